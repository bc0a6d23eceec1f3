"""
Authentication service: credential check and access token issuance.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, FrozenSet, List, Optional

from portfolio_api.core import role_catalog
from portfolio_api.core.config import Settings
from portfolio_api.core.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    RoleNotHeldError,
)
from portfolio_api.core.logging import get_logger
from portfolio_api.core.role_catalog import RoleDefinition
from portfolio_api.core.security import (
    create_jwt_token,
    decode_jwt_token,
    dummy_password_hash,
    verify_password,
)
from portfolio_api.models import RoleAssignment, RoleName, User
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.repositories.user_repository import UserRepository

logger = get_logger(__name__)


@dataclass
class LoginResult:
    token: str
    user: User
    roles: List[RoleAssignment]
    expires_in: int


@dataclass
class SwitchResult:
    token: str
    active_role: RoleDefinition
    roles: List[RoleName]
    permissions: FrozenSet[str]


class AuthService:
    """Service for authentication and token operations."""

    def __init__(
        self,
        user_repository: UserRepository,
        assignment_repository: RoleAssignmentRepository,
        settings: Settings
    ):
        """
        Initialize auth service.

        Args:
            user_repository: User repository instance
            assignment_repository: Role assignment repository instance
            settings: Application settings (JWT secret, algorithm, lifetime)
        """
        self.user_repo = user_repository
        self.assignment_repo = assignment_repository
        self.settings = settings

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return self.settings.jwt_expiration_minutes * 60

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check email/password.

        Unknown email, inactive account and wrong password all raise the
        same InvalidCredentialsError so callers cannot enumerate accounts.
        """
        user = await self.user_repo.get_by_email(email)
        if user is None or not user.is_active:
            verify_password(password, dummy_password_hash())
            raise InvalidCredentialsError()

        if not verify_password(password, user.hashed_password):
            raise InvalidCredentialsError()

        return user

    def create_access_token(
        self,
        user: User,
        role_names: List[RoleName],
        active_role: Optional[RoleName] = None
    ) -> str:
        """
        Create JWT access token.

        Claims carry identity and role names only, never permissions;
        authorization always re-reads the live roles.
        """
        token_data: Dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "roles": [RoleName(r).value for r in role_names],
            "type": "access",
        }
        if active_role is not None:
            token_data["active_role"] = RoleName(active_role).value

        return create_jwt_token(
            token_data,
            timedelta(minutes=self.settings.jwt_expiration_minutes),
            secret_key=self.settings.jwt_secret_key,
            algorithm=self.settings.jwt_algorithm,
        )

    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify and decode an access token.

        Raises:
            TokenExpiredError: If token has expired
            InvalidTokenError: If token is invalid, of the wrong type, or has no subject
        """
        payload = decode_jwt_token(
            token,
            secret_key=self.settings.jwt_secret_key,
            algorithm=self.settings.jwt_algorithm,
        )
        if payload.get("type") != "access":
            raise InvalidTokenError("Invalid token type")

        subject = payload.get("sub")
        if subject is None or not str(subject).isdigit():
            raise InvalidTokenError("Token missing subject")

        return payload

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Authenticate and mint a token carrying the user's current active roles.

        Records last_access_at. Raises InvalidCredentialsError on any failure.
        """
        user = await self.authenticate(email, password)
        roles = await self.assignment_repo.list_active_for_user(user.id)
        token = self.create_access_token(user, [a.role_name for a in roles])

        await self.user_repo.update_last_access(user.id)

        logger.info("user_logged_in", user_id=user.id, roles=[a.role_name.value for a in roles])
        return LoginResult(token=token, user=user, roles=roles, expires_in=self.expires_in)

    async def switch_active_role(self, user: User, requested_role: str) -> SwitchResult:
        """
        Mint a token whose active_role is requested_role.

        The role must be among the user's current active roles; the full
        role list stays in the token.

        Raises:
            RoleNotHeldError: requested_role is unknown or not currently held
        """
        roles = [a.role_name for a in await self.assignment_repo.list_active_for_user(user.id)]
        role = role_catalog.get_role(requested_role)
        if role is None or role.name not in roles:
            raise RoleNotHeldError(str(requested_role))

        token = self.create_access_token(user, roles, active_role=role.name)
        logger.info("active_role_switched", user_id=user.id, active_role=role.name.value)
        return SwitchResult(
            token=token,
            active_role=role,
            roles=roles,
            permissions=role.permissions,
        )
