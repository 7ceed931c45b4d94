"""Authentication service for account management and JWT token operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from eventease.schemas import UserCreate, UserUpdate, LoginRequest
from eventease.db.models.user import User
from eventease.db.repositories import (
    create_user as db_create_user,
    get_user_by_email as db_get_user_by_email,
    update_user as db_update_user,
)
from eventease.core.exceptions import ConflictError, InvalidInputError, UnauthorizedError
from eventease.core.logging import logger
from eventease.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    revoke_token,
    validate_password,
    verify_password,
)


class AuthService:
    """
    Service layer for account operations.

    Handles registration, login, token refresh, logout and profile updates.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def register(self, payload: UserCreate) -> User:
        """
        Register a new account.

        Raises:
            InvalidInputError: If the password is weak
            ConflictError: If the email is already registered
        """
        try:
            validate_password(payload.password)
        except ValueError as e:
            raise InvalidInputError(str(e))

        existing = await db_get_user_by_email(self.session, payload.email)
        if existing:
            raise ConflictError("Email already registered")

        user = await db_create_user(self.session, payload)
        logger.info(f"Registered account {user.id}")
        return user

    async def login(self, form_data: LoginRequest) -> dict:
        """
        Authenticate and issue access and refresh tokens.

        Raises:
            UnauthorizedError: If credentials are invalid
        """
        user = await db_get_user_by_email(self.session, form_data.email)
        if not user or not verify_password(form_data.password, user.hashed_password):
            raise UnauthorizedError("Incorrect email or password")

        token_data = {"sub": str(user.id), "role": user.role.value}
        return {
            "access_token": create_access_token(token_data),
            "refresh_token": create_refresh_token(token_data),
            "token_type": "bearer"
        }

    async def refresh_access_token(self, refresh_token: str) -> dict:
        try:
            token_data = decode_token(refresh_token)
        except ValueError:
            raise UnauthorizedError("Invalid refresh token")

        if token_data.get("type") != "refresh":
            raise UnauthorizedError("Invalid token type")

        access_token = create_access_token({"sub": token_data["sub"], "role": token_data.get("role")})
        return {
            "access_token": access_token,
            "token_type": "bearer"
        }

    async def logout(self, token: str) -> None:
        await revoke_token(token)

    async def update_profile(self, user: User, payload: UserUpdate) -> User:
        """
        Update the caller's name and/or email.

        Raises:
            ConflictError: If the new email belongs to another account
        """
        fields = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in fields and fields["email"] != user.email:
            existing = await db_get_user_by_email(self.session, fields["email"])
            if existing:
                raise ConflictError("Email already registered")
        return await db_update_user(self.session, user, fields)
