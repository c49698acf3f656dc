"""Receipt commands: generation, lifecycle and reporting."""

import click

from mentorpay.cli.date_filters import (
    date_range_options,
    required_date_range,
    resolve_cli_date_range,
)
from mentorpay.cli.display import echo_breakdown, echo_receipt, receipt_line, session_line
from mentorpay.cli.error_handling import handle_domain_error
from mentorpay.cli.identity import mentor_or_self, require_actor
from mentorpay.domain.entities import ReceiptPatch, ReceiptStatus
from mentorpay.domain.errors import DomainError
from mentorpay.domain.receipt import ReceiptService
from mentorpay.utils.date_parser import parse_date


def _service(ctx) -> ReceiptService:
    return ReceiptService(ctx.obj["db"], ctx.obj["policy"])


def _resolve_receipt_id(ctx, service: ReceiptService, actor, receipt: str) -> int:
    """Accept a numeric ID or a receipt number such as RCP-25-05-0001."""
    if receipt.isdigit():
        return int(receipt)
    try:
        return service.get_receipt_by_number(actor, receipt).id
    except DomainError as e:
        handle_domain_error(ctx, e)


@click.group()
def receipt_group():
    """Generate receipts and move them through draft, sent and paid."""
    pass


@receipt_group.command("generate")
@click.option("--mentor-id", type=int, help="Mentor ID (defaults to the acting mentor)")
@date_range_options
@click.option("--notes", help="Free-text notes")
@click.pass_context
def generate(ctx, mentor_id, start_date, end_date, month, period, notes):
    """Create a draft receipt from approved sessions in a date range.

    Examples:
        mentorpay receipt generate --mentor-id 2 --month 2025-05
        mentorpay receipt generate --start-date 2025-05-01 --end-date 2025-05-15
    """
    actor = require_actor(ctx)
    mentor_id = mentor_or_self(ctx, actor, mentor_id)
    start, end = required_date_range(ctx, start_date, end_date, month, period)

    try:
        receipt = _service(ctx).generate_receipt(actor, mentor_id, start, end, notes=notes)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created receipt {receipt.receipt_number} (ID: {receipt.id})")
    echo_breakdown(receipt.totals)


@receipt_group.command("simulate")
@click.option("--mentor-id", type=int, help="Mentor ID (defaults to the acting mentor)")
@date_range_options
@click.pass_context
def simulate(ctx, mentor_id, start_date, end_date, month, period):
    """Show what a receipt over a date range would total, without creating it."""
    actor = require_actor(ctx)
    mentor_id = mentor_or_self(ctx, actor, mentor_id)
    start, end = required_date_range(ctx, start_date, end_date, month, period)

    try:
        totals = _service(ctx).simulate_payout(actor, mentor_id, start, end)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Simulated payout for mentor {mentor_id}, {start} - {end}:")
    echo_breakdown(totals)


@receipt_group.command("list")
@click.option("--mentor-id", type=int, help="Filter by mentor (admins only)")
@click.option("--status", type=click.Choice([s.value for s in ReceiptStatus]), help="Filter by status")
@date_range_options
@click.pass_context
def list_receipts(ctx, mentor_id, status, start_date, end_date, month, period):
    """List receipts, newest first."""
    actor = require_actor(ctx)
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, month=month, period=period
    )
    try:
        receipts = _service(ctx).list_receipts(
            actor,
            mentor_id=mentor_id,
            status=ReceiptStatus(status) if status else None,
            start_date=start,
            end_date=end,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not receipts:
        click.echo("No receipts found.")
        return
    for receipt in receipts:
        click.echo(receipt_line(receipt))


@receipt_group.command("pending")
@click.option("--mentor-id", type=int, help="Filter by mentor (admins only)")
@click.pass_context
def pending(ctx, mentor_id):
    """List sent receipts awaiting payment."""
    actor = require_actor(ctx)
    try:
        receipts = _service(ctx).list_pending_payouts(actor, mentor_id=mentor_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not receipts:
        click.echo("No pending payouts.")
        return
    for receipt in receipts:
        click.echo(receipt_line(receipt))


@receipt_group.command("summary")
@click.option("--mentor-id", type=int, help="Filter by mentor (admins only)")
@date_range_options
@click.pass_context
def summary(ctx, mentor_id, start_date, end_date, month, period):
    """Totals over paid receipts, by payment date."""
    actor = require_actor(ctx)
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, month=month, period=period
    )
    try:
        result = _service(ctx).get_payout_summary(
            actor, mentor_id=mentor_id, payment_start=start, payment_end=end
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    t = result.totals
    click.echo(f"Paid receipts: {result.receipt_count}")
    click.echo(f"  Sessions:     {result.session_count} ({result.total_minutes} minutes)")
    click.echo(f"  Base payout:  {t.base_payout}")
    click.echo(f"  Platform fee: {t.platform_fee}")
    click.echo(f"  Taxes:        {t.taxes}")
    click.echo(f"  Final payout: {t.final_payout}")


@receipt_group.command("show")
@click.argument("receipt")
@click.option("--sessions", "with_sessions", is_flag=True, help="Also list the receipt's sessions")
@click.pass_context
def show(ctx, receipt: str, with_sessions: bool):
    """Show a receipt by ID or number."""
    actor = require_actor(ctx)
    service = _service(ctx)
    receipt_id = _resolve_receipt_id(ctx, service, actor, receipt)
    try:
        found = service.get_receipt(actor, receipt_id)
        sessions = service.list_receipt_sessions(actor, receipt_id) if with_sessions else []
    except DomainError as e:
        handle_domain_error(ctx, e)

    echo_receipt(found)
    for session in sessions:
        click.echo(f"  {session_line(session)}")


@receipt_group.command("send")
@click.argument("receipt")
@click.pass_context
def send(ctx, receipt: str):
    """Send a draft receipt. It can no longer be edited afterwards."""
    actor = require_actor(ctx)
    service = _service(ctx)
    receipt_id = _resolve_receipt_id(ctx, service, actor, receipt)
    try:
        sent = service.send(actor, receipt_id)
        click.echo(f"Sent receipt {sent.receipt_number}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@receipt_group.command("pay")
@click.argument("receipt")
@click.option("--reference", required=True, help="Payment reference, e.g. a bank transfer ID")
@click.option("--date", "payment_date", help="Payment date (defaults to today)")
@click.pass_context
def pay(ctx, receipt: str, reference: str, payment_date: str | None):
    """Mark a sent receipt and all of its sessions paid (admin only)."""
    actor = require_actor(ctx)
    service = _service(ctx)
    receipt_id = _resolve_receipt_id(ctx, service, actor, receipt)
    paid_on = None
    if payment_date:
        try:
            paid_on = parse_date(payment_date)
        except ValueError as e:
            click.echo(f"Error: Invalid payment date: {e}", err=True)
            ctx.exit(1)
    try:
        paid = service.mark_paid(actor, receipt_id, reference, paid_on)
        click.echo(
            f"Marked receipt {paid.receipt_number} paid on {paid.payment_date} "
            f"({paid.totals.session_count} sessions)"
        )
    except DomainError as e:
        handle_domain_error(ctx, e)


@receipt_group.command("update")
@click.argument("receipt")
@click.option("--notes", required=True, help="New notes")
@click.pass_context
def update(ctx, receipt: str, notes: str):
    """Edit the notes of a draft receipt."""
    actor = require_actor(ctx)
    service = _service(ctx)
    receipt_id = _resolve_receipt_id(ctx, service, actor, receipt)
    try:
        updated = service.update(actor, receipt_id, ReceiptPatch(notes=notes))
        click.echo(f"Updated receipt {updated.receipt_number}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@receipt_group.command("delete")
@click.argument("receipt")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx, receipt: str, yes: bool):
    """Delete a draft receipt and release its sessions."""
    actor = require_actor(ctx)
    service = _service(ctx)
    receipt_id = _resolve_receipt_id(ctx, service, actor, receipt)
    if not yes and not click.confirm(f"Are you sure you want to delete receipt {receipt}?"):
        click.echo("Deletion cancelled.")
        return
    try:
        service.delete(actor, receipt_id)
        click.echo(f"Deleted receipt {receipt}")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register receipt commands with main CLI."""
    cli.add_command(receipt_group, name="receipt")
