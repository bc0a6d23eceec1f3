"""
Script to create (or refresh) an administrator account.
"""
import asyncio
import re
import sys

import click

from portfolio_api.core.config import get_settings
from portfolio_api.core.exceptions import AppException
from portfolio_api.core.security import hash_password
from portfolio_api.database import Database
from portfolio_api.models import AuditAction, RoleName
from portfolio_api.repositories.audit_log_repository import AuditLogRepository
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.repositories.user_repository import UserRepository
from portfolio_api.services.assignment_service import AssignmentService


def validate_password(password: str) -> tuple[bool, str]:
    """
    Validate password strength.

    Args:
        password: Password to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"

    if not re.search(r"[A-Z]", password):
        return False, "Password must contain at least one uppercase letter"

    if not re.search(r"[a-z]", password):
        return False, "Password must contain at least one lowercase letter"

    if not re.search(r"\d", password):
        return False, "Password must contain at least one digit"

    return True, ""


async def create_admin_user(
    database: Database,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    force: bool = False
) -> int:
    """
    Create the account if needed and make sure it holds the administrator role.

    Returns:
        The administrator's user ID

    Raises:
        click.ClickException: If the account exists and force is not set
    """
    async with database.session() as session:
        user_repo = UserRepository(session)
        assignments = AssignmentService(RoleAssignmentRepository(session), user_repo)

        user = await user_repo.get_by_email(email)
        if user is not None:
            if not force:
                raise click.ClickException(f"User '{email}' already exists. Use --force to update it.")
            user = await user_repo.update(
                user.id,
                first_name=first_name,
                last_name=last_name,
                hashed_password=hash_password(password),
                is_active=True
            )
            click.echo(f"✓ Updated user: {email}")
        else:
            user = await user_repo.create(
                email=email.strip().lower(),
                hashed_password=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                is_active=True
            )
            await AuditLogRepository(session).create_log(
                user_id=None,
                action=AuditAction.USER_CREATED,
                entity_type="user",
                entity_id=user.id,
                details={"source": "create_admin"}
            )
            click.echo(f"✓ Created user: {email}")

        held = [a.role_name for a in await assignments.active_roles_for(user.id)]
        if RoleName.ADMINISTRATOR in held:
            click.echo("→ User already has the administrator role")
        else:
            await assignments.assign(user.id, RoleName.ADMINISTRATOR, assigned_by=None, notes="Created by create_admin")
            click.echo(f"✓ Assigned administrator role to {email}")

        await session.commit()
        return user.id


@click.command()
@click.option("--email", prompt=True, help="Administrator email address")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Administrator password"
)
@click.option("--first-name", prompt=True, help="First name(s)")
@click.option("--last-name", prompt=True, help="Last name(s)")
@click.option("--force", is_flag=True, help="Update the user if it already exists")
def main(email: str, password: str, first_name: str, last_name: str, force: bool):
    """Create an administrator account."""
    is_valid, error_msg = validate_password(password)
    if not is_valid:
        click.echo(f"✗ {error_msg}", err=True)
        sys.exit(1)

    async def run() -> int:
        database = Database(get_settings())
        try:
            return await create_admin_user(database, email, password, first_name, last_name, force)
        finally:
            await database.dispose()

    click.echo("Creating administrator...")
    try:
        user_id = asyncio.run(run())
    except AppException as exc:
        raise click.ClickException(exc.detail)

    click.echo("\n✓ Administrator ready!")
    click.echo(f"  ID: {user_id}")
    click.echo(f"  Email: {email}")
    click.echo(f"  Name: {first_name} {last_name}")
    click.echo("  Roles: administrator")


if __name__ == "__main__":
    main()
