import logging
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from payment_service.config import (
    JWT_SECRET,
    JWT_ALGORITHM,
    USER_TOKEN_EXPIRATION_SECONDS,
    PAYMENT_TOKEN_EXPIRATION_SECONDS,
)
from payment_service.database import get_session
from payment_service.errors import InvalidTokenError, ForbiddenError, NotFoundError
from payment_service.models import User

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)

class TokenType(enum.Enum):
    USER = "USER"
    PAYMENT = "PAYMENT"

@dataclass(frozen=True)
class TokenClaims:
    subject: str
    token_type: TokenType
    expired: bool
    payment_id: Optional[int] = None

@dataclass(frozen=True)
class Principal:
    """Authenticated caller, passed explicitly into every lifecycle operation."""
    user_id: int
    is_admin: bool = False

def issue_token(subject: str, token_type: TokenType, ttl: timedelta, **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "sub": subject,
        "type": token_type.value,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)

def issue_user_token(user_id: int) -> str:
    return issue_token(str(user_id), TokenType.USER, timedelta(seconds=USER_TOKEN_EXPIRATION_SECONDS))

def issue_payment_token(payment_id: int, user_id: int) -> str:
    return issue_token(
        str(user_id),
        TokenType.PAYMENT,
        timedelta(seconds=PAYMENT_TOKEN_EXPIRATION_SECONDS),
        payment_id=payment_id,
    )

def verify_token(token: str) -> TokenClaims:
    """
    Check the signature and structure of a token.

    Expiry is reported on the returned claims rather than raised, so the
    caller decides how to treat an expired credential.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": False, "require": ["sub", "exp"]},
        )
        token_type = TokenType(payload.get("type"))
    except (jwt.PyJWTError, ValueError) as e:
        logger.warning(f"Token verification failed: {e}")
        raise InvalidTokenError("Invalid token")

    expired = payload["exp"] <= datetime.now(timezone.utc).timestamp()
    return TokenClaims(
        subject=payload["sub"],
        token_type=token_type,
        expired=expired,
        payment_id=payload.get("payment_id"),
    )

def verify_payment_token(token: Optional[str]) -> TokenClaims:
    if not token:
        raise InvalidTokenError("Payment token is required")
    claims = verify_token(token)
    if claims.token_type is not TokenType.PAYMENT or claims.expired:
        raise InvalidTokenError("Invalid or expired payment token")
    return claims

async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_session),
) -> Principal:
    if not credentials:
        raise InvalidTokenError("Authentication required")

    claims = verify_token(credentials.credentials)
    if claims.token_type is not TokenType.USER or claims.expired:
        raise InvalidTokenError("Invalid or expired session token")

    try:
        user_id = int(claims.subject)
    except ValueError:
        raise InvalidTokenError("Invalid token subject")

    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError(f"User not found with id: {user_id}")
    return Principal(user_id=user.id, is_admin=user.is_admin)

async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise ForbiddenError("Administrator privileges required")
    return principal

def get_payment_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    return credentials.credentials if credentials else None
