"""Authentication routes for registration, login, logout, and token management."""
from fastapi import APIRouter, Depends, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from eventease.schemas import (
    UserCreate, UserUpdate, UserOut, Token, TokenResponse, LoginRequest, RefreshTokenRequest, ResponseEnvelope,
)
from eventease.services.auth_service import AuthService
from eventease.db.session import get_session
from eventease.db.models.user import User
from eventease.auth import get_current_user, security
from sqlalchemy.ext.asyncio import AsyncSession
from slowapi import Limiter
from slowapi.util import get_remote_address

router = APIRouter(prefix="/auth", tags=["auth"])
limiter = Limiter(key_func=get_remote_address)


def get_auth_service(session: AsyncSession = Depends(get_session)) -> AuthService:
    """Dependency injection for AuthService."""
    return AuthService(session)


@router.post(
    "/register",
    response_model=ResponseEnvelope[UserOut],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("3/minute")
async def register(
    request: Request,
    payload: UserCreate,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new account.

    Rate limit: 3 requests per minute
    """
    user = await auth_service.register(payload)
    return ResponseEnvelope(data=UserOut.model_validate(user))


@router.post("/login", response_model=ResponseEnvelope[TokenResponse], response_model_exclude_none=True)
@limiter.limit("5/minute")
async def login(
    request: Request,
    form_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Login endpoint returning access and refresh tokens.

    Rate limit: 5 requests per minute
    """
    tokens = await auth_service.login(form_data)
    return ResponseEnvelope(data=TokenResponse(**tokens))


@router.post("/refresh", response_model=ResponseEnvelope[Token], response_model_exclude_none=True)
@limiter.limit("10/minute")
async def refresh_access_token(
    request: Request,
    payload: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    tokens = await auth_service.refresh_access_token(payload.refresh_token)
    return ResponseEnvelope(data=Token(**tokens))


@router.post("/logout", response_model=ResponseEnvelope, response_model_exclude_none=True)
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Revoke the bearer token presented with this request."""
    await auth_service.logout(credentials.credentials)
    return ResponseEnvelope(message="Logged out successfully")


@router.get("/me", response_model=ResponseEnvelope[UserOut], response_model_exclude_none=True)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    return ResponseEnvelope(data=UserOut.model_validate(current_user))


@router.put("/me", response_model=ResponseEnvelope[UserOut], response_model_exclude_none=True)
async def update_current_user(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    user = await auth_service.update_profile(current_user, payload)
    return ResponseEnvelope(data=UserOut.model_validate(user))
