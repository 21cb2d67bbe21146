from __future__ import annotations

from pydantic import BaseModel


class SubscriptionStatusResponse(BaseModel):
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


class FeatureAccessResponse(BaseModel):
    feature: str
    hasAccess: bool
    tier: str
