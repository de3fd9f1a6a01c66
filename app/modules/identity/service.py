"""Identity business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.core.security import create_access_token, decode_token, oauth2_scheme, verify_password
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.schemas import AccessToken, LoginRequest
from app.shared.exceptions import ForbiddenException, UnauthenticatedException


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def login(self, payload: LoginRequest) -> AccessToken:
        """Authenticate user and issue an access token."""
        user = await self.repository.get_user_by_email(payload.email.lower())
        if user is None or not verify_password(payload.password, user.password_hash):
            raise UnauthenticatedException("Invalid credentials")

        if not user.is_active:
            raise UnauthenticatedException("User is inactive")

        return AccessToken(access_token=create_access_token(subject=str(user.id), role=user.role.value))

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthenticatedException("Invalid access token")

        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError as exc:
            raise UnauthenticatedException("Token subject is invalid") from exc

        user = await self.repository.get_user_by_id(user_id)
        if user is None:
            raise UnauthenticatedException("User not found")
        if not user.is_active:
            raise UnauthenticatedException("User is inactive")

        return user


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)


def require_roles(*roles: RoleEnum):
    """Dependency factory for role-based access."""

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise ForbiddenException("Operation not permitted for your role")
        return current_user

    return _checker


require_admin = require_roles(RoleEnum.ADMIN)
