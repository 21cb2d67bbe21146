from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from webstack.db.enums import AppRoleEnum, UsageTierEnum
from webstack.db.repositories.ai_usage import AiUsageRepository
from webstack.db.repositories.subscriptions import DomainSubscriptionsRepository, UserRolesRepository

# Weekly assistant minutes per tier; admins are tracked but never limited.
USAGE_LIMITS: dict[UsageTierEnum, int] = {
    UsageTierEnum.free: 30,
    UsageTierEnum.basic: 300,
    UsageTierEnum.business_ceo: 600,
    UsageTierEnum.white_label: 1200,
    UsageTierEnum.super_reseller: 2400,
    UsageTierEnum.admin: -1,
}
MESSAGE_MINUTES = 1
TOOL_CALL_MINUTES = 2

_SUBSCRIPTION_TIERS = {
    UsageTierEnum.super_reseller.value,
    UsageTierEnum.white_label.value,
    UsageTierEnum.business_ceo.value,
    UsageTierEnum.basic.value,
}


def week_start(today: Optional[date] = None) -> date:
    """Monday of the current UTC week."""
    today = today or datetime.now(timezone.utc).date()
    return today - timedelta(days=today.weekday())


@dataclass
class UsageSummary:
    minutesUsed: float
    minutesLimit: int
    tier: str
    canUse: bool
    isUnlimited: bool
    isAdmin: bool

    @property
    def limit_reached(self) -> bool:
        return not self.isAdmin and self.tier != UsageTierEnum.super_reseller.value and not self.canUse


def resolve_usage_tier(session: Session, user_id: str) -> UsageTierEnum:
    roles = UserRolesRepository(session).list_roles(user_id)
    if AppRoleEnum.super_admin.value in roles or AppRoleEnum.admin.value in roles:
        return UsageTierEnum.admin
    if AppRoleEnum.white_label_admin.value in roles:
        return UsageTierEnum.white_label
    subscription = DomainSubscriptionsRepository(session).latest_active(user_id)
    if subscription is not None and subscription.tier in _SUBSCRIPTION_TIERS:
        return UsageTierEnum(subscription.tier)
    return UsageTierEnum.free


def summarize_usage(session: Session, user_id: str, *, today: Optional[date] = None) -> UsageSummary:
    used = AiUsageRepository(session).minutes_used(user_id=user_id, week_start=week_start(today))
    tier = resolve_usage_tier(session, user_id)
    is_admin = tier == UsageTierEnum.admin
    limit = USAGE_LIMITS[tier]
    return UsageSummary(
        minutesUsed=used,
        minutesLimit=limit,
        tier=tier.value,
        canUse=is_admin or used < limit,
        isUnlimited=is_admin or tier == UsageTierEnum.super_reseller,
        isAdmin=is_admin,
    )


def record_usage(session: Session, user_id: str, minutes: float, *, today: Optional[date] = None) -> float:
    return AiUsageRepository(session).add_minutes(user_id=user_id, week_start=week_start(today), minutes=minutes)
