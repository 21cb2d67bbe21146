from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class VisitorInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    currentPage: Optional[str] = None


class VisitorChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    sessionId: Optional[str] = None
    action: Optional[str] = None
    visitorInfo: Optional[VisitorInfo] = None
    health_check: bool = False


class DashboardAssistantRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messages: Any = None
    conversationId: Optional[str] = None
    domain: Optional[str] = None
    checkUsage: bool = False
    model: Optional[str] = None


class UsageResponse(BaseModel):
    minutesUsed: float
    minutesLimit: int
    tier: str
    canUse: bool
    isUnlimited: bool
    isAdmin: bool
