"""Session commands: logging, editing and approval."""

import click

from mentorpay.cli.date_filters import date_range_options, resolve_cli_date_range
from mentorpay.cli.display import echo_session, session_line
from mentorpay.cli.error_handling import handle_domain_error
from mentorpay.cli.identity import mentor_or_self, require_actor
from mentorpay.domain.entities import SessionPatch, SessionStatus, SessionType
from mentorpay.domain.errors import DomainError
from mentorpay.domain.session import SessionService
from mentorpay.utils.amount_parser import parse_rate
from mentorpay.utils.date_parser import parse_datetime

SESSION_TYPES = [t.value for t in SessionType]


def _service(ctx) -> SessionService:
    return SessionService(ctx.obj["db"], ctx.obj["policy"])


def _parse_when(ctx, value: str | None, label: str):
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


@click.group()
def session_group():
    """Log, edit and review mentoring sessions."""
    pass


@session_group.command("create")
@click.option("--mentor-id", type=int, help="Mentor ID (defaults to the acting mentor)")
@click.option("--type", "session_type", type=click.Choice(SESSION_TYPES), default="live", show_default=True)
@click.option("--start", required=True, help="Start time, e.g. '2025-05-10 14:00'")
@click.option("--end", required=True, help="End time, e.g. '2025-05-10 15:30'")
@click.option("--notes", help="Free-text notes")
@click.pass_context
def create_session(ctx, mentor_id, session_type, start, end, notes):
    """Log a pending session (mentor only).

    Times without an offset are read as UTC.

    Examples:
        mentorpay session create --start "2025-05-10 14:00" --end "2025-05-10 15:30"
    """
    actor = require_actor(ctx)
    mentor_id = mentor_or_self(ctx, actor, mentor_id)
    start_time = _parse_when(ctx, start, "start time")
    end_time = _parse_when(ctx, end, "end time")

    try:
        session = _service(ctx).create_session(
            actor, mentor_id, session_type, start_time, end_time, notes=notes
        )
        click.echo(f"Created session {session.id} ({session.duration_minutes} minutes, pending)")
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("list")
@click.option("--mentor-id", type=int, help="Filter by mentor (admins only)")
@click.option("--status", type=click.Choice([s.value for s in SessionStatus]), help="Filter by status")
@date_range_options
@click.pass_context
def list_sessions(ctx, mentor_id, status, start_date, end_date, month, period):
    """List sessions by start time."""
    actor = require_actor(ctx)
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, month=month, period=period
    )

    try:
        sessions = _service(ctx).list_sessions(
            actor,
            mentor_id=mentor_id,
            status=SessionStatus(status) if status else None,
            start_date=start,
            end_date=end,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not sessions:
        click.echo("No sessions found.")
        return
    for session in sessions:
        click.echo(session_line(session))


@session_group.command("show")
@click.argument("session_id", type=int)
@click.pass_context
def show_session(ctx, session_id: int):
    """Show one session."""
    actor = require_actor(ctx)
    try:
        echo_session(_service(ctx).get_session(actor, session_id))
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("update")
@click.argument("session_id", type=int)
@click.option("--type", "session_type", type=click.Choice(SESSION_TYPES), help="New session type")
@click.option("--start", help="New start time")
@click.option("--end", help="New end time")
@click.option("--notes", help="New notes")
@click.pass_context
def update_session(ctx, session_id, session_type, start, end, notes):
    """Edit a pending or rejected session (owning mentor only)."""
    actor = require_actor(ctx)
    patch = SessionPatch(
        session_type=SessionType(session_type) if session_type else None,
        start_time=_parse_when(ctx, start, "start time"),
        end_time=_parse_when(ctx, end, "end time"),
        notes=notes,
    )
    try:
        session = _service(ctx).update_session(actor, session_id, patch)
        click.echo(f"Updated session {session.id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("delete")
@click.argument("session_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_session(ctx, session_id: int, yes: bool):
    """Delete a pending or rejected session (owning mentor only)."""
    actor = require_actor(ctx)
    if not yes and not click.confirm(f"Are you sure you want to delete session {session_id}?"):
        click.echo("Deletion cancelled.")
        return
    try:
        _service(ctx).delete_session(actor, session_id)
        click.echo(f"Deleted session {session_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("approve")
@click.argument("session_id", type=int)
@click.pass_context
def approve_session(ctx, session_id: int):
    """Approve a pending session and lock in its payout (admin only)."""
    actor = require_actor(ctx)
    try:
        session = _service(ctx).approve(actor, session_id)
        payout = session.payout
        click.echo(f"Approved session {session.id}")
        click.echo(
            f"  Base {payout.base_payout} | fee {payout.platform_fee} | "
            f"taxes {payout.taxes} | final {payout.final_payout}"
        )
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("reject")
@click.argument("session_id", type=int)
@click.option("--reason", required=True, help="Why the session is rejected")
@click.pass_context
def reject_session(ctx, session_id: int, reason: str):
    """Reject a pending session (admin only). Rejection is final."""
    actor = require_actor(ctx)
    try:
        _service(ctx).reject(actor, session_id, reason)
        click.echo(f"Rejected session {session_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("adjust-rate")
@click.argument("session_id", type=int)
@click.argument("rate", required=False)
@click.option("--clear", is_flag=True, help="Remove the adjusted rate")
@click.pass_context
def adjust_rate(ctx, session_id: int, rate: str | None, clear: bool):
    """Override the hourly rate of a pending session (admin only)."""
    actor = require_actor(ctx)
    if clear == (rate is not None):
        click.echo("Error: Give either RATE or --clear.", err=True)
        ctx.exit(1)
    try:
        new_rate = None if clear else parse_rate(rate, ctx.obj["policy"].currency)
        session = _service(ctx).set_adjusted_rate(actor, session_id, new_rate)
        click.echo(f"Session {session.id} rate is now {session.effective_rate}/h")
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)


@session_group.command("attach")
@click.argument("session_id", type=int)
@click.argument("filename")
@click.argument("path")
@click.pass_context
def attach(ctx, session_id: int, filename: str, path: str):
    """Record a stored file against a session (owning mentor only)."""
    actor = require_actor(ctx)
    try:
        attachment = _service(ctx).add_attachment(actor, session_id, filename, path)
        click.echo(f"Added attachment {attachment.id} to session {session_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("detach")
@click.argument("session_id", type=int)
@click.argument("attachment_id", type=int)
@click.pass_context
def detach(ctx, session_id: int, attachment_id: int):
    """Remove an attachment from a session (owning mentor only)."""
    actor = require_actor(ctx)
    try:
        _service(ctx).remove_attachment(actor, session_id, attachment_id)
        click.echo(f"Removed attachment {attachment_id} from session {session_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@session_group.command("stats")
@date_range_options
@click.pass_context
def stats(ctx, start_date, end_date, month, period):
    """Session counts, minutes and payouts per status (admin only)."""
    actor = require_actor(ctx)
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, month=month, period=period
    )
    try:
        rows = _service(ctx).get_session_stats(actor, start_date=start, end_date=end)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not rows:
        click.echo("No sessions found.")
        return
    for row in rows:
        click.echo(
            f"{row.status.value:8s} | {row.count:5d} sessions | {row.total_minutes:7d} min | "
            f"{row.total_final_payout}"
        )


def register_commands(cli):
    """Register session commands with main CLI."""
    cli.add_command(session_group, name="session")
