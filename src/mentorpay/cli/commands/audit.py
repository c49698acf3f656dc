"""Audit history commands."""

import click

from mentorpay.cli.display import audit_line
from mentorpay.cli.error_handling import handle_domain_error
from mentorpay.cli.identity import require_actor
from mentorpay.domain.access import require_admin
from mentorpay.domain.audit import AuditLogService
from mentorpay.domain.entities import EntityType
from mentorpay.domain.errors import DomainError


@click.command("history")
@click.argument("entity_type", type=click.Choice([e.value for e in EntityType]))
@click.argument("entity_id", type=int)
@click.pass_context
def history(ctx, entity_type: str, entity_id: int):
    """Show the audit history of a mentor, session, receipt or payout (admin only).

    Examples:
        mentorpay history receipt 3
        mentorpay history session 12
    """
    actor = require_actor(ctx)
    service = AuditLogService(ctx.obj["db"])

    try:
        require_admin(actor, "read audit history")
        entries = service.history(EntityType(entity_type), entity_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not entries:
        click.echo(f"No history for {entity_type} {entity_id}.")
        return
    for entry in entries:
        click.echo(audit_line(entry))


def register_commands(cli):
    """Register audit commands with main CLI."""
    cli.add_command(history, name="history")
