"""
Password hashing, token signing and the request-level authentication
dependencies.

Access and refresh tokens are signed with independent secrets; both carry
{sub: user id, email, role, tenant_id}. Refresh tokens also carry a `jti`
so logout can revoke them.
"""

import logging
import uuid
from datetime import timedelta
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from hms.constants.auth import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    BCRYPT_ROUNDS,
    REFRESH_SECRET_KEY,
    REFRESH_TOKEN_EXPIRE_DAYS,
    SECRET_KEY,
)
from hms.database import get_db
from hms.exceptions import (
    AccountNotActiveError,
    AuthenticationError,
    AuthorizationError,
    InvalidRefreshTokenError,
    InvalidTokenError,
    TokenExpiredError,
)
from hms.models.tenant import Tenant
from hms.models.user import User
from hms.services import permission_service
from hms.utils.clock import utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

# Bearer scheme for token validation; a missing header is reported by get_current_user
bearer_scheme = HTTPBearer(auto_error=False)


# Function to hash a password
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# Function to verify a password
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def dummy_verify() -> None:
    """Spend one hash verification so a missing account costs as much as a wrong password."""
    pwd_context.dummy_verify()


def token_claims(user: User) -> dict:
    return {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "tenant_id": user.tenant_id,
    }


def _encode(data: dict, secret: str, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    if "sub" not in to_encode:
        raise ValueError("Missing 'sub' claim (user id) in token data.")

    now = utcnow()
    to_encode.update({"exp": now + expires_delta, "iat": now, "type": token_type})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


# Function to create an access token with an expiration time
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data, SECRET_KEY, ACCESS_TOKEN_TYPE, expires_delta)


def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode = {**data, "jti": uuid.uuid4().hex}
    return _encode(to_encode, REFRESH_SECRET_KEY, REFRESH_TOKEN_TYPE, expires_delta)


# Function to decode an access token
def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Access token expired")
        raise TokenExpiredError()
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {str(e)}")
        raise InvalidTokenError()

    if payload.get("type") != ACCESS_TOKEN_TYPE or payload.get("sub") is None:
        logger.warning("Token is not an access token or is missing 'sub'")
        raise InvalidTokenError()
    return payload


def decode_refresh_token(token: str) -> dict:
    """Every failure mode collapses into InvalidRefreshTokenError."""
    try:
        payload = jwt.decode(token, REFRESH_SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info(f"Refresh token rejected: {str(e)}")
        raise InvalidRefreshTokenError()

    if payload.get("type") != REFRESH_TOKEN_TYPE or payload.get("sub") is None or payload.get("jti") is None:
        raise InvalidRefreshTokenError()
    return payload


def user_id_from_claims(payload: dict, error: type[AuthenticationError]) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise error() from None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer access token to an ACTIVE user.

    When the request named a tenant (header or subdomain), the token's user
    must belong to it.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    user_id = user_id_from_claims(payload, InvalidTokenError)

    user = await db.get(User, user_id)
    if user is None or user.deleted_at is not None:
        logger.warning(f"Token references missing user id={user_id}")
        raise InvalidTokenError()
    if not user.is_active:
        raise AccountNotActiveError()

    requested = getattr(request.state, "tenant_identifier", None)
    if requested:
        tenant = await db.get(Tenant, user.tenant_id)
        if tenant is None or tenant.identifier != requested:
            logger.warning(f"User id={user.id} presented a token for another tenant ({requested})")
            raise AuthorizationError("Token does not belong to this tenant")

    request.state.user_id = user.id
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """Dependency factory: allow the request only when the user's role is one of `roles`."""
    required = {getattr(role, "value", role) for role in roles}

    async def _current_user_with_role(current_user: User = Depends(get_current_user)) -> User:
        if not permission_service.authorize(current_user, required):
            logger.warning(f"Role '{current_user.role}' denied; requires one of {sorted(required)}")
            raise AuthorizationError(f"Role '{current_user.role}' does not have access to this resource.")
        return current_user

    return _current_user_with_role
