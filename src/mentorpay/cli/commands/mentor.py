"""Mentor management commands."""

import click

from mentorpay.cli.error_handling import handle_domain_error
from mentorpay.cli.identity import require_actor
from mentorpay.domain.errors import DomainError
from mentorpay.domain.mentor import MentorService
from mentorpay.utils.amount_parser import parse_rate


@click.group()
def mentor_group():
    """Manage mentors and their hourly rates."""
    pass


@mentor_group.command("create")
@click.argument("name", metavar="NAME")
@click.option("--rate", required=True, help="Hourly rate in major units (e.g. 1000 or 1,250.50)")
@click.option("--email", help="Contact email")
@click.pass_context
def create_mentor(ctx, name: str, rate: str, email: str | None):
    """Register a mentor (admin only).

    Examples:
        mentorpay mentor create "Ada Lovelace" --rate 1000
        mentorpay mentor create "Alan Turing" --rate 1250.50 --email alan@example.com
    """
    actor = require_actor(ctx)
    policy = ctx.obj["policy"]
    service = MentorService(ctx.obj["db"], currency=policy.currency)

    try:
        mentor = service.create_mentor(actor, name=name, hourly_rate=parse_rate(rate, policy.currency), email=email)
        click.echo(f"Created mentor '{mentor.name}' (ID: {mentor.id}) at {mentor.hourly_rate}/h")
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)


@mentor_group.command("list")
@click.pass_context
def list_mentors(ctx):
    """List all mentors."""
    service = MentorService(ctx.obj["db"], currency=ctx.obj["policy"].currency)

    mentors = service.list_mentors()
    if not mentors:
        click.echo("No mentors found.")
        return

    click.echo("\nMentors:")
    click.echo("-" * 60)
    for m in mentors:
        click.echo(f"ID: {m.id:3d} | {m.name:24s} | {m.hourly_rate}/h")


@mentor_group.command("set-rate")
@click.argument("mentor_id", type=int)
@click.argument("rate")
@click.pass_context
def set_rate(ctx, mentor_id: int, rate: str):
    """Change a mentor's hourly rate (admin only).

    Existing sessions keep the rate they were logged with.
    """
    actor = require_actor(ctx)
    policy = ctx.obj["policy"]
    service = MentorService(ctx.obj["db"], currency=policy.currency)

    try:
        mentor = service.change_rate(actor, mentor_id, parse_rate(rate, policy.currency))
        click.echo(f"Mentor {mentor.id} rate is now {mentor.hourly_rate}/h")
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register mentor commands with main CLI."""
    cli.add_command(mentor_group, name="mentor")
