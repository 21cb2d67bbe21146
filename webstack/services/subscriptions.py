from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.orm import Session

from webstack.db.enums import AppRoleEnum, SubscriptionTierEnum, WhiteLabelStatusEnum
from webstack.db.repositories.subscriptions import UserRolesRepository, WhiteLabelSettingsRepository

UNLIMITED = -1

# tier -> (domains, keywords, articles per month)
TIER_LIMITS: dict[SubscriptionTierEnum, tuple[int, int, int]] = {
    SubscriptionTierEnum.free: (1, 0, 0),
    SubscriptionTierEnum.business_ceo: (1, 15, 2),
    SubscriptionTierEnum.white_label: (10, 50, 10),
    SubscriptionTierEnum.super_reseller: (UNLIMITED, UNLIMITED, UNLIMITED),
}


@dataclass
class SubscriptionStatus:
    tier: str
    isActive: bool
    hasBron: bool
    hasCade: bool
    hasAeoGeo: bool
    hasGmb: bool
    hasSocial: bool
    hasOnPageSeo: bool
    hasPpcPages: bool
    domainCount: int
    keywordCount: int
    articlesPerMonth: int
    isWhiteLabel: bool
    isSuperReseller: bool

    def to_dict(self) -> dict:
        return asdict(self)


def resolve_tier(roles: set[str], subscription_status: Optional[str]) -> tuple[SubscriptionTierEnum, bool]:
    """Combine white-label settings with role grants. `subscription_status` is None when no settings row exists."""
    is_super_admin = AppRoleEnum.super_admin.value in roles
    is_white_label_admin = AppRoleEnum.white_label_admin.value in roles

    tier = SubscriptionTierEnum.free
    is_active = False
    if subscription_status is not None:
        is_active = subscription_status in (WhiteLabelStatusEnum.active.value, WhiteLabelStatusEnum.trial.value)
        if is_super_admin or subscription_status == WhiteLabelStatusEnum.enterprise.value:
            tier = SubscriptionTierEnum.super_reseller
        elif is_white_label_admin or subscription_status == WhiteLabelStatusEnum.white_label.value:
            tier = SubscriptionTierEnum.white_label
        elif is_active:
            tier = SubscriptionTierEnum.business_ceo

    if is_super_admin:
        tier, is_active = SubscriptionTierEnum.super_reseller, True
    elif AppRoleEnum.admin.value in roles:
        tier, is_active = SubscriptionTierEnum.business_ceo, True
    return tier, is_active


def build_status(tier: SubscriptionTierEnum, is_active: bool) -> SubscriptionStatus:
    paid = tier != SubscriptionTierEnum.free
    reseller_grade = tier in (SubscriptionTierEnum.white_label, SubscriptionTierEnum.super_reseller)
    domains, keywords, articles = TIER_LIMITS[tier]
    return SubscriptionStatus(
        tier=tier.value,
        isActive=is_active,
        hasBron=paid,
        hasCade=paid,
        hasAeoGeo=paid,
        hasGmb=paid,
        hasSocial=paid,
        hasOnPageSeo=reseller_grade,
        hasPpcPages=reseller_grade,
        domainCount=domains,
        keywordCount=keywords,
        articlesPerMonth=articles,
        isWhiteLabel=reseller_grade,
        isSuperReseller=tier == SubscriptionTierEnum.super_reseller,
    )


def free_status() -> SubscriptionStatus:
    return build_status(SubscriptionTierEnum.free, False)


def get_subscription_status(session: Session, user_id: str) -> SubscriptionStatus:
    settings_row = WhiteLabelSettingsRepository(session).get_by_user_id(user_id)
    roles = UserRolesRepository(session).list_roles(user_id)
    subscription_status = None
    if settings_row is not None:
        subscription_status = settings_row.subscription_status or ""
    tier, is_active = resolve_tier(roles, subscription_status)
    return build_status(tier, is_active)


def has_feature(status: SubscriptionStatus, feature: str) -> bool:
    access = {
        "bron": status.hasBron,
        "cade": status.hasCade,
        "aeo-geo": status.hasAeoGeo,
        "gmb": status.hasGmb,
        "social-signals": status.hasSocial,
        "on-page-seo": status.hasOnPageSeo,
        "landing-pages": status.hasPpcPages,
        "vi-domain": status.domainCount > 1 or status.tier != SubscriptionTierEnum.free.value,
    }
    return access.get(feature, False)
