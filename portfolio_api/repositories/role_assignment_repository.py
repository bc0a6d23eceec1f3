"""
RoleAssignmentRepository for role assignment persistence and reporting queries.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.models import RoleAssignment, RoleName, User, utcnow
from portfolio_api.repositories.base import BaseRepository


class RoleAssignmentRepository(BaseRepository[RoleAssignment]):
    """
    Repository for RoleAssignment model.

    Domain validation (catalog membership, user existence, duplicates)
    lives in AssignmentService; this class only reads and writes rows.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, RoleAssignment)

    async def get_active(self, user_id: int, role_name: RoleName) -> Optional[RoleAssignment]:
        """Return the active assignment for (user_id, role_name), if any."""
        result = await self.session.execute(
            select(RoleAssignment).where(
                RoleAssignment.user_id == user_id,
                RoleAssignment.role_name == role_name,
                RoleAssignment.active.is_(True)
            )
        )
        return result.scalar_one_or_none()

    async def get_latest_revoked(self, user_id: int, role_name: RoleName) -> Optional[RoleAssignment]:
        """Return the most recently revoked assignment for (user_id, role_name)."""
        result = await self.session.execute(
            select(RoleAssignment)
            .where(
                RoleAssignment.user_id == user_id,
                RoleAssignment.role_name == role_name,
                RoleAssignment.active.is_(False)
            )
            .order_by(RoleAssignment.revoked_at.desc(), RoleAssignment.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_assignment(
        self,
        user_id: int,
        role_name: RoleName,
        assigned_by: Optional[int],
        notes: Optional[str] = None
    ) -> RoleAssignment:
        """
        Insert a new active assignment.

        Raises sqlalchemy.exc.IntegrityError when the partial unique index
        rejects a second active row for the same pair.
        """
        return await self.create(
            user_id=user_id,
            role_name=role_name,
            active=True,
            assigned_at=utcnow(),
            assigned_by=assigned_by,
            notes=notes
        )

    async def mark_revoked(
        self,
        assignment: RoleAssignment,
        revoked_by: Optional[int],
        note: str,
        revoked_at: datetime
    ) -> RoleAssignment:
        """Flip an assignment to inactive and append the revocation note."""
        assignment.active = False
        assignment.revoked_at = revoked_at
        assignment.revoked_by = revoked_by
        assignment.append_note(note)
        await self.session.flush()
        return assignment

    async def mark_reactivated(
        self,
        assignment: RoleAssignment,
        reactivated_by: Optional[int],
        note: str,
        reactivated_at: datetime
    ) -> RoleAssignment:
        """Reactivate a revoked assignment in place and append a note."""
        assignment.active = True
        assignment.assigned_at = reactivated_at
        assignment.assigned_by = reactivated_by
        assignment.revoked_at = None
        assignment.revoked_by = None
        assignment.append_note(note)
        await self.session.flush()
        return assignment

    async def list_active_for_user(self, user_id: int) -> List[RoleAssignment]:
        """Active assignments of a user, oldest grant first."""
        result = await self.session.execute(
            select(RoleAssignment)
            .where(
                RoleAssignment.user_id == user_id,
                RoleAssignment.active.is_(True)
            )
            .order_by(RoleAssignment.assigned_at, RoleAssignment.id)
        )
        return list(result.scalars().all())

    async def list_history_for_user(self, user_id: int, limit: int = 50) -> List[RoleAssignment]:
        """All assignments of a user, newest first."""
        result = await self.session.execute(
            select(RoleAssignment)
            .where(RoleAssignment.user_id == user_id)
            .order_by(RoleAssignment.assigned_at.desc(), RoleAssignment.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_users_with_role(
        self, role_name: RoleName, active_only: bool = True
    ) -> List[Tuple[User, RoleAssignment]]:
        """Active users paired with their assignment of role_name."""
        stmt = (
            select(User, RoleAssignment)
            .join(RoleAssignment, RoleAssignment.user_id == User.id)
            .where(
                RoleAssignment.role_name == role_name,
                User.is_active.is_(True)
            )
            .order_by(User.last_name, User.first_name, RoleAssignment.assigned_at.desc())
        )
        if active_only:
            stmt = stmt.where(RoleAssignment.active.is_(True))
        result = await self.session.execute(stmt)
        return [(user, assignment) for user, assignment in result.all()]

    async def list_assignments(
        self,
        role_name: Optional[RoleName] = None,
        active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[Tuple[RoleAssignment, User]], int]:
        """
        Filtered, paginated listing across all users.

        Args:
            role_name: Only this role
            active: Only active (True) or revoked (False) rows
            search: Substring matched against user email and names
            skip: Rows to skip
            limit: Maximum rows to return

        Returns:
            Tuple of ((assignment, user) rows, total matching rows)
        """
        conditions = []
        if role_name is not None:
            conditions.append(RoleAssignment.role_name == role_name)
        if active is not None:
            conditions.append(RoleAssignment.active.is_(active))
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    User.email.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern)
                )
            )

        total = await self.session.scalar(
            select(func.count(RoleAssignment.id))
            .select_from(RoleAssignment)
            .join(User, RoleAssignment.user_id == User.id)
            .where(*conditions)
        )
        result = await self.session.execute(
            select(RoleAssignment, User)
            .join(User, RoleAssignment.user_id == User.id)
            .where(*conditions)
            .order_by(RoleAssignment.assigned_at.desc(), RoleAssignment.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [(assignment, user) for assignment, user in result.all()], total or 0

    async def role_statistics(self) -> Dict[RoleName, Dict[str, Any]]:
        """Per-role totals for roles that have at least one assignment."""
        active_count = func.sum(case((RoleAssignment.active.is_(True), 1), else_=0))
        result = await self.session.execute(
            select(
                RoleAssignment.role_name,
                func.count(RoleAssignment.id),
                active_count,
                func.count(func.distinct(RoleAssignment.user_id)),
                func.min(RoleAssignment.assigned_at),
                func.max(RoleAssignment.assigned_at),
            ).group_by(RoleAssignment.role_name)
        )
        stats: Dict[RoleName, Dict[str, Any]] = {}
        for role_name, total, active, unique_users, first_at, last_at in result.all():
            active = int(active or 0)
            stats[role_name] = {
                "total": total,
                "active": active,
                "revoked": total - active,
                "unique_users": unique_users,
                "first_assigned_at": first_at,
                "last_assigned_at": last_at,
            }
        return stats
