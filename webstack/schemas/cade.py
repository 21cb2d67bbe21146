from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class CadeApiRequest(BaseModel):
    action: Optional[str] = None
    domain: Optional[str] = None
    params: Optional[dict[str, Any]] = None
