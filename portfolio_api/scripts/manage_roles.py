"""
Command line role management: grant, revoke and inspect roles by email.
"""
import asyncio
from typing import Optional

import click

from portfolio_api.core import role_catalog
from portfolio_api.core.config import get_settings
from portfolio_api.core.exceptions import AppException
from portfolio_api.database import Database
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.repositories.user_repository import UserRepository
from portfolio_api.services.assignment_service import AssignmentService

ROLE_CHOICES = [role.name.value for role in role_catalog.list_roles()]


async def _with_service(action):
    database = Database(get_settings())
    try:
        async with database.session() as session:
            user_repo = UserRepository(session)
            service = AssignmentService(RoleAssignmentRepository(session), user_repo)
            result = await action(service, user_repo)
            await session.commit()
            return result
    finally:
        await database.dispose()


async def _user_id(user_repo: UserRepository, email: str) -> int:
    user = await user_repo.get_by_email(email)
    if user is None:
        raise click.ClickException(f"No user with email '{email}'")
    return user.id


def _run(action):
    try:
        return asyncio.run(_with_service(action))
    except AppException as exc:
        raise click.ClickException(f"{exc.code}: {exc.detail}")


@click.group()
def cli():
    """Manage user roles."""


@cli.command()
@click.argument("email")
@click.argument("role", type=click.Choice(ROLE_CHOICES))
@click.option("--notes", default=None, help="Note stored with the assignment")
def assign(email: str, role: str, notes: Optional[str]):
    """Grant ROLE to the user with EMAIL."""
    async def action(service, user_repo):
        return await service.assign(await _user_id(user_repo, email), role, assigned_by=None, notes=notes)

    assignment = _run(action)
    click.echo(f"✓ Assigned {role} to {email} (assignment {assignment.id})")


@cli.command()
@click.argument("email")
@click.argument("role", type=click.Choice(ROLE_CHOICES))
@click.option("--reason", default=None, help="Reason recorded in the assignment notes")
def revoke(email: str, role: str, reason: Optional[str]):
    """Revoke ROLE from the user with EMAIL."""
    async def action(service, user_repo):
        return await service.revoke(await _user_id(user_repo, email), role, revoked_by=None, reason=reason)

    _run(action)
    click.echo(f"✓ Revoked {role} from {email}")


@cli.command(name="list")
@click.argument("email")
@click.option("--history", is_flag=True, help="Include revoked assignments")
def list_roles(email: str, history: bool):
    """Show the roles of the user with EMAIL."""
    async def action(service, user_repo):
        user_id = await _user_id(user_repo, email)
        if history:
            return await service.history_for(user_id)
        return await service.active_roles_for(user_id)

    assignments = _run(action)
    if not assignments:
        click.echo("(no roles)")
    for a in assignments:
        state = "active" if a.active else f"revoked {a.revoked_at:%Y-%m-%d}"
        click.echo(f"{a.role_name.value:<15} {state:<20} assigned {a.assigned_at:%Y-%m-%d %H:%M}")


def main():
    cli()


if __name__ == "__main__":
    main()
