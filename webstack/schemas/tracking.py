from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VisitorSessionTrackRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Optional[Literal["init", "touch", "page_view"]] = None
    session_id: Optional[str] = Field(default=None, max_length=64)
    first_page: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    domain: Optional[str] = None
    page_path: Optional[str] = None
    page_title: Optional[str] = None
    time_on_page: Optional[int] = None
    scroll_depth: Optional[int] = None

    @field_validator("action", "session_id", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value


class VisitorSessionTrackResponse(BaseModel):
    success: bool = True
    session_id: str
    recovered: bool = False


class ToolInteractionRequest(BaseModel):
    session_id: Optional[str] = Field(default=None, max_length=64)
    tool_name: str = Field(min_length=1)
    tool_type: Optional[str] = None
    page_path: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class FormSubmissionRequest(BaseModel):
    session_id: Optional[str] = Field(default=None, max_length=64)
    form_name: str = Field(min_length=1)
    form_data: dict[str, Any] = Field(default_factory=dict)
    page_path: Optional[str] = None


class LeadRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=20)
    domain: Optional[str] = None
    metric_type: Optional[str] = None
    source_page: Optional[str] = None


class RecordCreatedResponse(BaseModel):
    success: bool = True
    id: str


class LiveVisitorOut(BaseModel):
    session_id: str
    first_page: Optional[str] = None
    last_activity_at: datetime
    started_at: datetime
    referrer: Optional[str] = None
    user_id: Optional[str] = None
    domain: Optional[str] = None
    avatar_url: Optional[str] = None
    display_name: Optional[str] = None
    is_current_user: bool = False


class LiveVisitorsResponse(BaseModel):
    visitors: list[LiveVisitorOut]
    count: int
