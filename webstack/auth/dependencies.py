from dataclasses import dataclass, field
import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from webstack.auth.supabase import verify_supabase_token


bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None
    provider: Optional[str] = None
    user_metadata: dict[str, Any] = field(default_factory=dict)


def _context_from_claims(claims: dict[str, Any]) -> AuthContext:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    app_metadata = claims.get("app_metadata") or {}
    return AuthContext(
        user_id=str(user_id),
        email=claims.get("email"),
        provider=app_metadata.get("provider"),
        user_metadata=claims.get("user_metadata") or {},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    auth = _context_from_claims(verify_supabase_token(credentials.credentials))
    logger.debug("AuthContext built", extra={"sub": auth.user_id, "provider": auth.provider})
    return auth


def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Optional[AuthContext]:
    """Resolve the caller when a valid bearer token is present; anonymous callers get None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return _context_from_claims(verify_supabase_token(credentials.credentials))
    except HTTPException as exc:
        logger.info("Ignoring unusable bearer token", extra={"status_code": exc.status_code})
        return None
