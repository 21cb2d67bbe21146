from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from webstack.auth.dependencies import AuthContext, get_optional_user
from webstack.db.deps import get_session
from webstack.schemas.subscriptions import FeatureAccessResponse, SubscriptionStatusResponse
from webstack.services.subscriptions import (
    SubscriptionStatus,
    free_status,
    get_subscription_status,
    has_feature,
)

router = APIRouter(prefix="/subscription", tags=["subscription"])


def _status_for(session: Session, auth: Optional[AuthContext]) -> SubscriptionStatus:
    if auth is None:
        return free_status()
    return get_subscription_status(session, auth.user_id)


@router.get("/status", response_model=SubscriptionStatusResponse)
def subscription_status(
    session: Session = Depends(get_session),
    auth: Optional[AuthContext] = Depends(get_optional_user),
):
    return _status_for(session, auth).to_dict()


@router.get("/features/{feature}", response_model=FeatureAccessResponse)
def feature_access(
    feature: str,
    session: Session = Depends(get_session),
    auth: Optional[AuthContext] = Depends(get_optional_user),
):
    status = _status_for(session, auth)
    return FeatureAccessResponse(feature=feature, hasAccess=has_feature(status, feature), tier=status.tier)
