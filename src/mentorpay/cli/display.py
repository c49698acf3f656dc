"""Plain-text rendering of entities for the CLI."""

import click

from mentorpay.domain.entities import AggregateBreakdown, AuditLogEntry, Payout, Receipt, Session


def _ts(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def echo_breakdown(totals: AggregateBreakdown) -> None:
    b = totals.breakdown
    click.echo(f"  Sessions:     {totals.session_count} ({totals.total_minutes} minutes)")
    click.echo(f"  Base payout:  {b.base_payout}")
    click.echo(f"  Platform fee: {b.platform_fee}")
    click.echo(f"  Taxes:        {b.taxes}")
    click.echo(f"  Final payout: {b.final_payout}")


def session_line(session: Session) -> str:
    final = session.payout.final_payout if session.payout is not None else "-"
    return (
        f"ID: {session.id:4d} | {_ts(session.start_time)} | {session.duration_minutes:4d} min | "
        f"{session.session_type.value:16s} | {session.status.value:8s} | {final}"
    )


def echo_session(session: Session) -> None:
    click.echo(f"Session {session.id} (mentor {session.mentor_id})")
    click.echo(f"  Type:     {session.session_type.value}")
    click.echo(f"  Window:   {_ts(session.start_time)} - {_ts(session.end_time)}")
    click.echo(f"  Duration: {session.duration_minutes} minutes")
    click.echo(f"  Rate:     {session.effective_rate}/h")
    click.echo(f"  Status:   {session.status.value}")
    if session.rejection_reason:
        click.echo(f"  Reason:   {session.rejection_reason}")
    if session.payout is not None:
        click.echo(f"  Payout:   {session.payout.final_payout} (base {session.payout.base_payout})")
    if session.receipt_id is not None:
        click.echo(f"  Receipt:  {session.receipt_id}")
    if session.notes:
        click.echo(f"  Notes:    {session.notes}")
    for attachment in session.attachments:
        click.echo(f"  Attachment {attachment.id}: {attachment.filename} ({attachment.path})")


def receipt_line(receipt: Receipt) -> str:
    return (
        f"{receipt.receipt_number} | ID: {receipt.id:4d} | mentor {receipt.mentor_id:4d} | "
        f"{receipt.start_date} - {receipt.end_date} | {receipt.status.value:5s} | "
        f"{receipt.totals.breakdown.final_payout}"
    )


def echo_receipt(receipt: Receipt) -> None:
    click.echo(f"Receipt {receipt.receipt_number} (ID: {receipt.id})")
    click.echo(f"  Mentor:  {receipt.mentor_id}")
    click.echo(f"  Range:   {receipt.start_date} - {receipt.end_date}")
    click.echo(f"  Status:  {receipt.status.value}")
    echo_breakdown(receipt.totals)
    if receipt.payment_reference:
        click.echo(f"  Paid:    {receipt.payment_date} ref {receipt.payment_reference}")
    if receipt.payout_id is not None:
        click.echo(f"  Payout:  {receipt.payout_id}")
    if receipt.notes:
        click.echo(f"  Notes:   {receipt.notes}")


def payout_line(payout: Payout) -> str:
    return (
        f"{payout.payout_number} | ID: {payout.id:4d} | mentor {payout.mentor_id:4d} | "
        f"{len(payout.receipt_ids):3d} receipts | {payout.status.value:9s} | "
        f"{payout.totals.breakdown.final_payout}"
    )


def echo_payout(payout: Payout) -> None:
    click.echo(f"Payout {payout.payout_number} (ID: {payout.id})")
    click.echo(f"  Mentor:  {payout.mentor_id}")
    click.echo(f"  Range:   {payout.start_date} - {payout.end_date}")
    click.echo(f"  Status:  {payout.status.value}")
    echo_breakdown(payout.totals)
    if payout.payment_reference:
        click.echo(f"  Paid:    {payout.payment_date} ref {payout.payment_reference}")
    if payout.notes:
        click.echo(f"  Notes:   {payout.notes}")


def audit_line(entry: AuditLogEntry) -> str:
    line = f"{_ts(entry.created_at)} | {entry.action:18s} | actor {entry.actor_id}"
    if entry.description:
        line += f" | {entry.description}"
    for change in entry.changes:
        line += f" | {change.field}: {change.old!r} -> {change.new!r}"
    return line
