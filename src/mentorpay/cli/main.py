"""Main CLI entry point."""

import click

from mentorpay.config import DB_PATH_ENV, load_policy
from mentorpay.database.factories import create_sqlite_database
from mentorpay.domain.entities import Actor, Role
from mentorpay.domain.errors import DomainError
from mentorpay.logging_config import configure_logging

# Import and register all commands at module level
from mentorpay.cli.commands import audit, mentor, payout, receipt, session


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides MENTORPAY_DB_PATH environment variable)",
    envvar=DB_PATH_ENV,
)
@click.option("--actor-id", type=int, envvar="MENTORPAY_ACTOR_ID", help="Acting user ID")
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role]),
    envvar="MENTORPAY_ROLE",
    help="Acting user role",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    envvar="MENTORPAY_LOG_LEVEL",
    help="Emit JSON log lines at this level to stderr",
)
@click.pass_context
def cli(ctx, db_path: str | None, actor_id: int | None, role: str | None, log_level: str | None):
    """Mentorpay - Session approval, receipts and payouts for mentors.

    Mentors log sessions, admins approve them, and approved sessions are
    gathered into numbered receipts that move from draft to sent to paid.
    Sent or paid receipts are bundled into payouts for settlement.
    """
    ctx.ensure_object(dict)

    if log_level:
        configure_logging(level=log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            ctx.obj["policy"] = load_policy()
        except DomainError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)

        ctx.obj["actor"] = None
        if actor_id is not None and role is not None:
            ctx.obj["actor"] = Actor(id=actor_id, role=Role(role))


# Register all commands
mentor.register_commands(cli)
session.register_commands(cli)
receipt.register_commands(cli)
payout.register_commands(cli)
audit.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
