"""
Authentication Service

Registration, login, token refresh and logout, plus the password-reset,
email-verification and change-password flows.

Account emails are dispatched after the triggering change is committed and
are best-effort: a failed send is logged and never undoes the change.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from hms.auth import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    dummy_verify,
    hash_password,
    token_claims,
    user_id_from_claims,
    verify_password,
)
from hms.config import settings
from hms.constants.auth import ACCESS_TOKEN_EXPIRE_MINUTES
from hms.constants.roles import DEFAULT_ROLE, UserRole
from hms.exceptions import (
    AccountNotActiveError,
    AuthorizationError,
    DuplicateUserError,
    InvalidCredentialsError,
    InvalidCurrentPasswordError,
    InvalidOrExpiredTokenError,
    InvalidRefreshTokenError,
    InvalidVerificationTokenError,
    TenantInvalidError,
    UserNotFoundError,
)
from hms.models.revoked_token import RevokedToken
from hms.models.tenant import Tenant
from hms.models.user import User, UserStatus
from hms.services import subscription_service
from hms.services.email_service import EmailService
from hms.services.permission_service import seed_permissions
from hms.services.tenant_service import resolve_tenant
from hms.utils.clock import utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRES_IN = ACCESS_TOKEN_EXPIRE_MINUTES * 60


def generate_account_token() -> str:
    """Generate a secure random token for verification and reset links"""
    return secrets.token_urlsafe(32)


@dataclass
class AuthResult:
    user: User
    tenant: Tenant
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = ACCESS_TOKEN_EXPIRES_IN


class AuthService:
    def __init__(self, db: AsyncSession, email_service: EmailService):
        self.db = db
        self.email_service = email_service

    # ── Lookups ───────────────────────────────────────────────────────────────

    async def _find_user(self, email: str, tenant_id: int) -> User | None:
        result = await self.db.execute(
            select(User).where(
                User.email == email.lower(),
                User.tenant_id == tenant_id,
                User.deleted_at.is_(None),
            )
        )
        return result.scalars().first()

    async def _find_user_any(self, email: str, tenant_id: int) -> User | None:
        # Soft-deleted rows still hold the (email, tenant) pair
        result = await self.db.execute(select(User).where(User.email == email, User.tenant_id == tenant_id))
        return result.scalars().first()

    async def _find_by_token(self, column, token: str) -> User | None:
        result = await self.db.execute(select(User).where(column == token, User.deleted_at.is_(None)))
        return result.scalars().first()

    async def _dispatch(self, send, *args) -> None:
        try:
            sent = await run_in_threadpool(send, *args)
        except Exception as e:
            logger.error(f"Email dispatch failed: {e}")
            return
        if not sent:
            logger.info("Email not delivered for %s", args[0])

    # ── Tokens ────────────────────────────────────────────────────────────────

    def generate_tokens(self, user: User) -> dict:
        claims = token_claims(user)
        return {
            "access_token": create_access_token(claims),
            "refresh_token": create_refresh_token(claims),
            "token_type": "Bearer",
            "expires_in": ACCESS_TOKEN_EXPIRES_IN,
        }

    async def _is_revoked(self, jti: str) -> bool:
        result = await self.db.execute(select(RevokedToken.id).where(RevokedToken.jti == jti))
        return result.first() is not None

    async def refresh_access_token(self, refresh_token: str) -> dict:
        """
        Issue a new access token from a refresh token. The refresh token
        itself is not rotated.
        """
        payload = decode_refresh_token(refresh_token)
        if await self._is_revoked(payload["jti"]):
            logger.info("Refresh attempted with revoked token jti=%s", payload["jti"])
            raise InvalidRefreshTokenError()

        user = await self.db.get(User, user_id_from_claims(payload, InvalidRefreshTokenError))
        if user is None or not user.is_active:
            raise InvalidRefreshTokenError()

        return {
            "access_token": create_access_token(token_claims(user)),
            "token_type": "Bearer",
            "expires_in": ACCESS_TOKEN_EXPIRES_IN,
        }

    async def purge_expired_revocations(self) -> int:
        """Drop denylist rows whose token has expired anyway; returns the count removed."""
        result = await self.db.execute(delete(RevokedToken).where(RevokedToken.expires_at < utcnow()))
        return result.rowcount or 0

    async def logout(self, refresh_token: str) -> None:
        """
        Revoke a refresh token. Tokens that do not verify are ignored.
        Expired denylist rows are purged in the same transaction.
        """
        try:
            payload = decode_refresh_token(refresh_token)
        except InvalidRefreshTokenError:
            logger.info("Logout with an invalid refresh token; nothing to revoke")
            return

        if await self._is_revoked(payload["jti"]):
            return

        purged = await self.purge_expired_revocations()
        if purged:
            logger.info("Purged %d expired revoked tokens", purged)
        self.db.add(
            RevokedToken(
                jti=payload["jti"],
                user_id=user_id_from_claims(payload, InvalidRefreshTokenError),
                expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc).replace(tzinfo=None),
            )
        )
        await self.db.commit()
        logger.info("Refresh token revoked: user_id=%s jti=%s", payload["sub"], payload["jti"])

    # ── Register / login ──────────────────────────────────────────────────────

    async def register(
        self,
        email: str,
        password: str,
        profile: dict,
        tenant_identifier: str | None,
        role: UserRole | str | None = None,
    ) -> AuthResult:
        """
        Create a PENDING_VERIFICATION account in the tenant and send the
        verification email. The returned tokens only authenticate once the
        email has been verified. Staff roles take a seat and are refused once
        the tenant's seats are used up.
        """
        tenant = await resolve_tenant(tenant_identifier, self.db)
        role = UserRole(role) if role else DEFAULT_ROLE
        if role == UserRole.SUPER_ADMIN:
            raise AuthorizationError("SUPER_ADMIN accounts cannot be self-registered")

        email = email.lower()
        if await self._find_user_any(email, tenant.id) is not None:
            raise DuplicateUserError(email)

        is_staff = role != UserRole.PATIENT
        if is_staff:
            await subscription_service.ensure_staff_seat(tenant.id, self.db)

        user = User(
            tenant_id=tenant.id,
            email=email,
            hashed_password=hash_password(password),
            first_name=profile.get("first_name", ""),
            last_name=profile.get("last_name", ""),
            phone=profile.get("phone"),
            role=role.value,
            permissions=seed_permissions(role),
            status=UserStatus.PENDING_VERIFICATION.value,
            email_verification_token=generate_account_token(),
            must_change_password=False,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateUserError(email)
        await self.db.refresh(user)
        logger.info("User registered: id=%d tenant_id=%d role=%s", user.id, tenant.id, user.role)
        if is_staff:
            await subscription_service.sync_staff_usage(tenant.id, self.db)

        await self._dispatch(
            self.email_service.send_verification_email, user.email, user.full_name, user.email_verification_token
        )

        return AuthResult(user=user, tenant=tenant, **self.generate_tokens(user))

    async def login(self, email: str, password: str, tenant_identifier: str | None) -> AuthResult:
        tenant = await resolve_tenant(tenant_identifier, self.db)
        user = await self._find_user(email, tenant.id)

        if user is None:
            dummy_verify()
            logger.info("Login failed: unknown email for tenant_id=%d", tenant.id)
            raise InvalidCredentialsError()
        if not verify_password(password, user.hashed_password):
            logger.info("Login failed: wrong password for user id=%d", user.id)
            raise InvalidCredentialsError()
        if user.status != UserStatus.ACTIVE.value:
            logger.info("Login refused: user id=%d is %s", user.id, user.status)
            raise AccountNotActiveError()

        user.last_login_at = utcnow()
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("User logged in: id=%d tenant_id=%d", user.id, tenant.id)
        return AuthResult(user=user, tenant=tenant, **self.generate_tokens(user))

    # ── Account token flows ───────────────────────────────────────────────────

    async def forgot_password(self, email: str, tenant_identifier: str | None) -> None:
        """
        Start a password reset. Unknown tenants and unknown emails return
        silently so the response never reveals whether an account exists.
        """
        try:
            tenant = await resolve_tenant(tenant_identifier, self.db)
        except TenantInvalidError:
            logger.info("Password reset requested for an invalid tenant")
            return

        user = await self._find_user(email, tenant.id)
        if user is None:
            logger.info("Password reset requested for an unknown email in tenant_id=%d", tenant.id)
            return

        user.password_reset_token = generate_account_token()
        user.password_reset_expires = utcnow() + timedelta(hours=settings.password_reset_expire_hours)
        await self.db.commit()
        logger.info("Password reset token issued for user id=%d", user.id)

        await self._dispatch(
            self.email_service.send_password_reset_email, user.email, user.full_name, user.password_reset_token
        )

    async def reset_password(self, token: str, new_password: str) -> None:
        user = await self._find_by_token(User.password_reset_token, token)
        if user is None or user.password_reset_expires is None or user.password_reset_expires < utcnow():
            raise InvalidOrExpiredTokenError()

        user.hashed_password = hash_password(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.must_change_password = False
        await self.db.commit()
        logger.info("Password reset completed for user id=%d", user.id)

    async def verify_email(self, token: str) -> User:
        user = await self._find_by_token(User.email_verification_token, token)
        if user is None:
            raise InvalidVerificationTokenError()

        user.is_email_verified = True
        user.email_verified_at = utcnow()
        # An administrator's suspension or deactivation outlives the link
        if user.status == UserStatus.PENDING_VERIFICATION.value:
            user.status = UserStatus.ACTIVE.value
        user.email_verification_token = None
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("Email verified for user id=%d", user.id)
        return user

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = await self.db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            raise UserNotFoundError(user_id)
        if not verify_password(current_password, user.hashed_password):
            raise InvalidCurrentPasswordError()

        user.hashed_password = hash_password(new_password)
        user.must_change_password = False
        await self.db.commit()
        logger.info("Password changed for user id=%d", user.id)
