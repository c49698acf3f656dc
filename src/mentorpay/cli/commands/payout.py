"""Payout commands: bundling receipts and settling transfers."""

import click

from mentorpay.cli.date_filters import date_range_options, required_date_range
from mentorpay.cli.display import echo_breakdown, echo_payout, payout_line, receipt_line
from mentorpay.cli.error_handling import handle_domain_error
from mentorpay.cli.identity import require_actor
from mentorpay.domain.entities import PayoutStatus
from mentorpay.domain.errors import DomainError
from mentorpay.domain.payout_service import PayoutService
from mentorpay.utils.date_parser import parse_date


def _service(ctx) -> PayoutService:
    return PayoutService(ctx.obj["db"], ctx.obj["policy"])


def _resolve_payout_id(ctx, service: PayoutService, actor, payout: str) -> int:
    """Accept a numeric ID or a payout number such as PAY-25-05-0001."""
    if payout.isdigit():
        return int(payout)
    try:
        return service.get_payout_by_number(actor, payout).id
    except DomainError as e:
        handle_domain_error(ctx, e)


@click.group()
def payout_group():
    """Bundle sent or paid receipts into payouts (admin only)."""
    pass


@payout_group.command("create")
@click.option("--mentor-id", type=int, required=True, help="Mentor whose receipts are bundled")
@date_range_options
@click.option("--notes", help="Free-text notes")
@click.pass_context
def create(ctx, mentor_id, start_date, end_date, month, period, notes):
    """Bundle a mentor's sent or paid receipts within a date range.

    Examples:
        mentorpay payout create --mentor-id 2 --month 2025-05
    """
    actor = require_actor(ctx)
    start, end = required_date_range(ctx, start_date, end_date, month, period)

    try:
        payout = _service(ctx).create_payout(actor, mentor_id, start, end, notes=notes)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Created payout {payout.payout_number} (ID: {payout.id}) "
        f"with {len(payout.receipt_ids)} receipts"
    )
    echo_breakdown(payout.totals)


@payout_group.command("list")
@click.option("--mentor-id", type=int, help="Filter by mentor (admins only)")
@click.option("--status", type=click.Choice([s.value for s in PayoutStatus]), help="Filter by status")
@click.pass_context
def list_payouts(ctx, mentor_id, status):
    """List payouts, newest first."""
    actor = require_actor(ctx)
    try:
        payouts = _service(ctx).list_payouts(
            actor, mentor_id=mentor_id, status=PayoutStatus(status) if status else None
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not payouts:
        click.echo("No payouts found.")
        return
    for payout in payouts:
        click.echo(payout_line(payout))


@payout_group.command("show")
@click.argument("payout")
@click.option("--receipts", "with_receipts", is_flag=True, help="Also list the bundled receipts")
@click.pass_context
def show(ctx, payout: str, with_receipts: bool):
    """Show a payout by ID or number."""
    actor = require_actor(ctx)
    service = _service(ctx)
    payout_id = _resolve_payout_id(ctx, service, actor, payout)
    try:
        found = service.get_payout(actor, payout_id)
        receipts = service.list_payout_receipts(actor, payout_id) if with_receipts else []
    except DomainError as e:
        handle_domain_error(ctx, e)

    echo_payout(found)
    for receipt in receipts:
        click.echo(f"  {receipt_line(receipt)}")


@payout_group.command("complete")
@click.argument("payout")
@click.option("--reference", required=True, help="Transfer reference")
@click.option("--date", "payment_date", help="Payment date (defaults to today)")
@click.pass_context
def complete(ctx, payout: str, reference: str, payment_date: str | None):
    """Record the transfer and pay every sent receipt on the payout."""
    actor = require_actor(ctx)
    service = _service(ctx)
    payout_id = _resolve_payout_id(ctx, service, actor, payout)
    paid_on = None
    if payment_date:
        try:
            paid_on = parse_date(payment_date)
        except ValueError as e:
            click.echo(f"Error: Invalid payment date: {e}", err=True)
            ctx.exit(1)
    try:
        completed = service.complete(actor, payout_id, reference, paid_on)
        click.echo(f"Completed payout {completed.payout_number} on {completed.payment_date}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@payout_group.command("cancel")
@click.argument("payout")
@click.option("--reason", help="Why the payout is cancelled")
@click.pass_context
def cancel(ctx, payout: str, reason: str | None):
    """Cancel a pending payout and release its receipts."""
    actor = require_actor(ctx)
    service = _service(ctx)
    payout_id = _resolve_payout_id(ctx, service, actor, payout)
    try:
        cancelled = service.cancel(actor, payout_id, reason=reason)
        click.echo(f"Cancelled payout {cancelled.payout_number}")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register payout commands with main CLI."""
    cli.add_command(payout_group, name="payout")
