from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class PlacesRequest(BaseModel):
    action: Optional[str] = None
    input: Optional[str] = None
    placeId: Optional[str] = None
    sessionToken: Optional[str] = None
