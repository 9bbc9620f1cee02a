import logging
import time
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Request

from . import config

logger = logging.getLogger(__name__)

SESSION_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionContext:
    """Caller identity resolved for a single request"""

    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None
    verified: bool = False


def issue_session_token(
    user_id: str,
    email: Optional[str] = None,
    role: str = "USER",
    verified: bool = False,
    max_age: Optional[int] = None,
) -> str:
    """Mint a signed session token for a user"""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "verified": verified,
        "iat": now,
        "exp": now + (max_age if max_age is not None else config.SESSION_MAX_AGE),
    }
    return jwt.encode(payload, config.SESSION_SECRET, algorithm=SESSION_ALGORITHM)


def decode_session_token(token: str) -> Optional[dict]:
    """
    Verify signature and expiry of a session token.
    Returns the claims, or None when the token cannot be trusted.
    """
    try:
        return jwt.decode(
            token,
            config.SESSION_SECRET,
            algorithms=[SESSION_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("ℹ️ Session token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Session token rejected: {e}")
    return None


def extract_session_token(request: Request) -> Optional[str]:
    """Session cookie first, then an Authorization: Bearer header"""
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def resolve_session(request: Request) -> Optional[SessionContext]:
    """
    Resolve the caller's session.

    A trusted token without a user id claim still yields a SessionContext,
    with an empty user_id; callers must check `session.user_id`.
    """
    token = extract_session_token(request)
    if not token:
        return None

    claims = decode_session_token(token)
    if claims is None:
        return None

    user_id = claims.get("sub") or claims.get("id") or ""
    return SessionContext(
        user_id=str(user_id),
        email=claims.get("email"),
        role=claims.get("role"),
        verified=bool(claims.get("verified", False)),
    )


def has_user(session: Optional[SessionContext]) -> bool:
    """True only for a session carrying a non-empty user id"""
    return session is not None and bool(session.user_id)


async def get_session(request: Request) -> Optional[SessionContext]:
    """FastAPI dependency; never raises, absence is returned as None"""
    return resolve_session(request)
