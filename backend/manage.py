"""Management commands for the library lending backend."""

from __future__ import annotations

import logging
from typing import Optional

import click

from lending.core.security import create_member_token
from lending.db.seed import seed_demo_data
from lending.db.session import SessionLocal, create_tables
from lending.main import create_app
from lending.repositories.member_repo import MemberRepository

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

# Create the Flask application once so commands can share configuration.
app = create_app()


@click.group()
def cli() -> None:
    """Entry point for management commands."""


@cli.command("init-db")
def init_db() -> None:
    """Create all tables in the configured database."""
    with app.app_context():
        create_tables()
    logging.info("Database tables created.")


@cli.command("seed")
@click.option("--seed", "seed_value", default=42, show_default=True, type=int)
def seed(seed_value: int) -> None:
    """Load the deterministic demo catalog, members and loan history."""
    with app.app_context():
        summary = seed_demo_data(seed=seed_value)
    logging.info("Seed complete: %s", summary)


@cli.command("issue-token")
@click.option("--email", required=True, help="Email of the member to mint a token for.")
@click.option(
    "--role",
    "role_override",
    default=None,
    help="Role claim to embed instead of the member's stored role.",
)
def issue_token(email: str, role_override: Optional[str]) -> None:
    """Print a bearer token for a member (development only)."""
    session = SessionLocal()
    try:
        member = MemberRepository(session).get_by_email(email)
        if member is None:
            raise click.ClickException(f"No member found with email '{email}'.")
        token = create_member_token(member.id, member.email, role_override or member.role)
    finally:
        session.close()
    click.echo(token)


if __name__ == "__main__":
    cli()
