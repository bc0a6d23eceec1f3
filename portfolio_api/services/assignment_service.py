"""
Assignment service: the user-role assignment store.

Validates requests against the role catalog and the users table, then
reads and writes role_assignments through RoleAssignmentRepository.
Callers own the transaction: every method flushes, none commits, except
bulk_assign which commits per item so one bad row cannot undo the others.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError

from portfolio_api.core import role_catalog
from portfolio_api.core.exceptions import (
    AppException,
    AssignmentNotFoundError,
    DuplicateRoleError,
    InvalidRoleError,
    RoleNotActiveError,
    SelfRevocationError,
    UserNotFoundError,
)
from portfolio_api.core.logging import get_logger
from portfolio_api.models import RoleAssignment, RoleName, User, utcnow
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.repositories.user_repository import UserRepository

logger = get_logger(__name__)


@dataclass
class SyncResult:
    """Outcome of sync_roles."""

    user_id: int
    added: List[RoleName] = field(default_factory=list)
    removed: List[RoleName] = field(default_factory=list)
    active_roles: List[RoleName] = field(default_factory=list)


@dataclass
class BulkItemResult:
    """Outcome of one item of bulk_assign."""

    user_id: int
    role_name: str
    success: bool
    assignment_id: Optional[int] = None
    error_code: Optional[str] = None
    error: Optional[str] = None


def _timestamp(value) -> str:
    return value.isoformat(sep=" ", timespec="seconds")


class AssignmentService:
    """Grant, revoke and query role assignments."""

    def __init__(
        self,
        assignment_repository: RoleAssignmentRepository,
        user_repository: UserRepository,
        history_default_limit: int = 50,
    ):
        self.assignment_repo = assignment_repository
        self.user_repo = user_repository
        self.history_default_limit = history_default_limit

    @staticmethod
    def _require_role(role_name) -> RoleName:
        """Return the catalog RoleName for role_name or raise InvalidRoleError."""
        if not role_catalog.is_valid_role(role_name):
            raise InvalidRoleError(str(role_name))
        return RoleName(role_name)

    async def _require_active_user(self, user_id: int) -> User:
        user = await self.user_repo.get_active_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def _insert(
        self,
        user_id: int,
        role: RoleName,
        assigned_by: Optional[int],
        notes: Optional[str]
    ) -> RoleAssignment:
        try:
            return await self.assignment_repo.create_assignment(
                user_id=user_id,
                role_name=role,
                assigned_by=assigned_by,
                notes=notes,
            )
        except IntegrityError:
            # A concurrent request won the race past the pre-check.
            await self.assignment_repo.session.rollback()
            logger.warning("role_assignment_conflict", user_id=user_id, role=role.value)
            raise DuplicateRoleError(role.value)

    async def assign(
        self,
        user_id: int,
        role_name,
        assigned_by: Optional[int],
        notes: Optional[str] = None
    ) -> RoleAssignment:
        """
        Grant role_name to user_id.

        Args:
            user_id: Target user
            role_name: Catalog role name (str or RoleName)
            assigned_by: Acting administrator, None for system grants
            notes: Free text stored with the assignment

        Returns:
            The new active RoleAssignment

        Raises:
            InvalidRoleError: role_name is not in the catalog
            UserNotFoundError: user is missing or inactive
            DuplicateRoleError: user already holds the role actively
        """
        role = self._require_role(role_name)
        await self._require_active_user(user_id)

        if await self.assignment_repo.get_active(user_id, role) is not None:
            raise DuplicateRoleError(role.value)

        assignment = await self._insert(user_id, role, assigned_by, notes)
        logger.info(
            "role_assigned",
            user_id=user_id,
            role=role.value,
            assigned_by=assigned_by,
            assignment_id=assignment.id,
        )
        return assignment

    async def revoke(
        self,
        user_id: int,
        role_name,
        revoked_by: Optional[int],
        reason: Optional[str] = None
    ) -> RoleAssignment:
        """
        Revoke the active assignment of role_name from user_id.

        The row is kept; it becomes inactive and gets a revocation note.

        Raises:
            InvalidRoleError: role_name is not in the catalog
            SelfRevocationError: an administrator revoking their own administrator role
            RoleNotActiveError: no active assignment exists
        """
        role = self._require_role(role_name)
        if role == RoleName.ADMINISTRATOR and revoked_by is not None and revoked_by == user_id:
            raise SelfRevocationError()

        assignment = await self.assignment_repo.get_active(user_id, role)
        if assignment is None:
            raise RoleNotActiveError(role.value)

        now = utcnow()
        note = f"Revoked {_timestamp(now)} by user {revoked_by}"
        if reason:
            note += f" - Reason: {reason}"

        assignment = await self.assignment_repo.mark_revoked(assignment, revoked_by, note, now)
        logger.info(
            "role_revoked",
            user_id=user_id,
            role=role.value,
            revoked_by=revoked_by,
            assignment_id=assignment.id,
        )
        return assignment

    async def reactivate(
        self,
        user_id: int,
        role_name,
        reactivated_by: Optional[int],
        reason: Optional[str] = None
    ) -> RoleAssignment:
        """
        Reactivate the most recently revoked assignment of role_name.

        Raises:
            InvalidRoleError: role_name is not in the catalog
            UserNotFoundError: user is missing or inactive
            DuplicateRoleError: the role is already active
            AssignmentNotFoundError: there is no revoked assignment to reactivate
        """
        role = self._require_role(role_name)
        await self._require_active_user(user_id)

        if await self.assignment_repo.get_active(user_id, role) is not None:
            raise DuplicateRoleError(role.value)

        assignment = await self.assignment_repo.get_latest_revoked(user_id, role)
        if assignment is None:
            raise AssignmentNotFoundError(role.value)

        now = utcnow()
        note = f"Reactivated {_timestamp(now)} by user {reactivated_by}"
        if reason:
            note += f" - Reason: {reason}"

        try:
            assignment = await self.assignment_repo.mark_reactivated(assignment, reactivated_by, note, now)
        except IntegrityError:
            await self.assignment_repo.session.rollback()
            raise DuplicateRoleError(role.value)

        logger.info(
            "role_reactivated",
            user_id=user_id,
            role=role.value,
            reactivated_by=reactivated_by,
            assignment_id=assignment.id,
        )
        return assignment

    async def active_roles_for(self, user_id: int) -> List[RoleAssignment]:
        """Active assignments ordered by assignment time ascending. Empty for unknown users."""
        return await self.assignment_repo.list_active_for_user(user_id)

    async def history_for(self, user_id: int, limit: Optional[int] = None) -> List[RoleAssignment]:
        """All assignments, active and revoked, newest first."""
        return await self.assignment_repo.list_history_for_user(
            user_id, limit or self.history_default_limit
        )

    async def users_with_role(
        self, role_name, active_only: bool = True
    ) -> List[Tuple[User, RoleAssignment]]:
        """Active users holding role_name, with their assignment row."""
        role = self._require_role(role_name)
        return await self.assignment_repo.list_users_with_role(role, active_only=active_only)

    async def list_assignments(
        self,
        role_name=None,
        active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[Tuple[RoleAssignment, User]], int]:
        role = self._require_role(role_name) if role_name is not None else None
        return await self.assignment_repo.list_assignments(
            role_name=role, active=active, search=search, skip=skip, limit=limit
        )

    async def sync_roles(
        self,
        user_id: int,
        desired_roles: Iterable,
        changed_by: Optional[int],
        reason: Optional[str] = None
    ) -> SyncResult:
        """
        Make the user's active role set equal to desired_roles.

        Missing roles are assigned and surplus roles revoked within the
        caller's transaction. Everything is validated before the first write.
        """
        desired = []
        for name in desired_roles:
            role = self._require_role(name)
            if role not in desired:
                desired.append(role)
        await self._require_active_user(user_id)

        current = [a.role_name for a in await self.assignment_repo.list_active_for_user(user_id)]
        to_add = [role for role in desired if role not in current]
        to_remove = [role for role in current if role not in desired]

        if (
            RoleName.ADMINISTRATOR in to_remove
            and changed_by is not None
            and changed_by == user_id
        ):
            raise SelfRevocationError()

        notes = f"Synchronized by user {changed_by}"
        if reason:
            notes += f" - Reason: {reason}"

        for role in to_add:
            await self.assign(user_id, role, changed_by, notes=notes)
        for role in to_remove:
            await self.revoke(user_id, role, changed_by, reason=reason or "Role synchronization")

        active = [a.role_name for a in await self.assignment_repo.list_active_for_user(user_id)]
        logger.info(
            "roles_synchronized",
            user_id=user_id,
            added=[r.value for r in to_add],
            removed=[r.value for r in to_remove],
            changed_by=changed_by,
        )
        return SyncResult(user_id=user_id, added=to_add, removed=to_remove, active_roles=active)

    async def bulk_assign(
        self,
        items: Sequence[Tuple[int, str, Optional[str]]],
        assigned_by: Optional[int]
    ) -> List[BulkItemResult]:
        """
        Assign many (user_id, role_name, notes) items, committing each success.

        Failures are reported per item with their error code; they never
        abort the remaining items.
        """
        results: List[BulkItemResult] = []
        session = self.assignment_repo.session
        for user_id, role_name, notes in items:
            try:
                assignment = await self.assign(user_id, role_name, assigned_by, notes=notes)
                await session.commit()
            except AppException as exc:
                await session.rollback()
                results.append(BulkItemResult(
                    user_id=user_id,
                    role_name=str(role_name),
                    success=False,
                    error_code=exc.code,
                    error=exc.detail,
                ))
                continue
            results.append(BulkItemResult(
                user_id=user_id,
                role_name=assignment.role_name.value,
                success=True,
                assignment_id=assignment.id,
            ))
        return results

    async def statistics(self) -> List[Dict[str, Any]]:
        """Per-role assignment counts, one entry for every catalog role."""
        stats = await self.assignment_repo.role_statistics()
        report = []
        for role in role_catalog.list_roles():
            entry = stats.get(role.name, {
                "total": 0,
                "active": 0,
                "revoked": 0,
                "unique_users": 0,
                "first_assigned_at": None,
                "last_assigned_at": None,
            })
            report.append({"role": role, **entry})
        return report
