from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import HTTPException, status
from jose import jwt
from jose.exceptions import JWTError

from webstack.config import settings


logger = logging.getLogger("auth.supabase")


def verify_supabase_token(token: str) -> Dict[str, Any]:
    if not settings.SUPABASE_JWT_SECRET:
        logger.error("SUPABASE_JWT_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Auth is not configured")
    try:
        claims = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError as exc:
        logger.warning("Token verification failed", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    logger.debug(
        "Verified Supabase token",
        extra={"sub": claims.get("sub"), "aud": claims.get("aud"), "role": claims.get("role")},
    )
    return claims
