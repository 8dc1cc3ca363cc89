"""
Authentication Routes

POST /auth/register         → create a PENDING_VERIFICATION account
POST /auth/login            → token pair for an ACTIVE account
POST /auth/refresh          → new access token from a refresh token
POST /auth/logout           → revoke a refresh token
POST /auth/forgot-password  → start a password reset (always the same answer)
POST /auth/reset-password   → set a new password with a reset token
POST /auth/verify-email     → activate the account with a verification token
POST /auth/change-password  → change the current user's password
GET  /auth/me               → the current user

The tenant comes from the body's tenant_identifier or, failing that, from
the X-Tenant-ID header / subdomain picked up by TenantMiddleware.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hms.auth import get_current_user
from hms.database import get_db
from hms.models.user import User
from hms.schemas.auth import (
    AccessTokenResponse,
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from hms.schemas.tenant import TenantResponse
from hms.schemas.user import UserResponse
from hms.services.auth_service import AuthResult, AuthService
from hms.services.email_service import EmailService, get_email_service

router = APIRouter()
logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent."


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> AuthService:
    return AuthService(db, email_service)


def _tenant_identifier(request: Request, from_body: str | None) -> str | None:
    return from_body or getattr(request.state, "tenant_identifier", None)


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        token_type=result.token_type,
        expires_in=result.expires_in,
        user=UserResponse.model_validate(result.user),
        tenant=TenantResponse.model_validate(result.tenant),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    result = await service.register(
        email=payload.email,
        password=payload.password,
        profile={"first_name": payload.first_name, "last_name": payload.last_name, "phone": payload.phone},
        tenant_identifier=_tenant_identifier(request, payload.tenant_identifier),
        role=payload.role,
    )
    return _auth_response(result)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    result = await service.login(
        payload.email, payload.password, _tenant_identifier(request, payload.tenant_identifier)
    )
    return _auth_response(result)


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(payload: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    return await service.refresh_access_token(payload.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(payload: LogoutRequest, service: AuthService = Depends(get_auth_service)):
    await service.logout(payload.refresh_token)
    return MessageResponse(message="Logged out")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    """Same response whether or not the account exists."""
    await service.forgot_password(payload.email, _tenant_identifier(request, payload.tenant_identifier))
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    await service.reset_password(payload.token, payload.new_password)
    return MessageResponse(message="Password has been reset")


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(payload: VerifyEmailRequest, service: AuthService = Depends(get_auth_service)):
    await service.verify_email(payload.token)
    return MessageResponse(message="Email verified")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.change_password(current_user.id, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed")


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
