from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class KeywordSnapshotIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    keyword: str = Field(min_length=1)
    google_position: Optional[int] = None
    bing_position: Optional[int] = None
    yahoo_position: Optional[int] = None
    search_volume: Optional[int] = None
    cpc: Optional[float] = None
    competition_level: Optional[str] = None


class KeywordHistoryRequest(BaseModel):
    action: Optional[str] = None
    domain: Optional[str] = None
    keywords: Optional[list[KeywordSnapshotIn]] = None
    keyword: Optional[str] = None
    limit: int = Field(default=52, ge=1, le=520)
    force: bool = False
