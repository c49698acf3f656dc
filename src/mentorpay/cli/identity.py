"""CLI helpers for the acting identity."""

from __future__ import annotations

import click

from mentorpay.domain.entities import Actor


def require_actor(ctx: click.Context) -> Actor:
    """Return the acting identity, or exit with a CLI error.

    The identity comes from --actor-id/--role or MENTORPAY_ACTOR_ID and
    MENTORPAY_ROLE.
    """
    actor = ctx.obj.get("actor")
    if actor is None:
        click.echo(
            "Error: No acting identity. Pass --actor-id and --role, "
            "or set MENTORPAY_ACTOR_ID and MENTORPAY_ROLE.",
            err=True,
        )
        ctx.exit(1)
    return actor


def mentor_or_self(ctx: click.Context, actor: Actor, mentor_id: int | None) -> int:
    """Return mentor_id, defaulting to the actor when the actor is a mentor."""
    if mentor_id is not None:
        return mentor_id
    if actor.is_admin:
        click.echo("Error: --mentor-id is required for admins", err=True)
        ctx.exit(1)
    return actor.id
