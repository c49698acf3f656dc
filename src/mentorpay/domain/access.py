"""Role and ownership checks for the acting identity."""

from typing import Optional

from mentorpay.domain.entities import Actor, Role
from mentorpay.domain.errors import UnauthorizedError


def _check_actor(actor: Actor) -> None:
    if not isinstance(actor, Actor):
        raise UnauthorizedError("An authenticated actor is required")


def require_admin(actor: Actor, action: str) -> None:
    """Raise UnauthorizedError unless actor is an admin."""
    _check_actor(actor)
    if actor.role != Role.ADMIN:
        raise UnauthorizedError(f"Only an admin may {action}")


def require_owner(actor: Actor, mentor_id: int, action: str) -> None:
    """Raise UnauthorizedError unless actor is the mentor mentor_id."""
    _check_actor(actor)
    if actor.role != Role.MENTOR or actor.id != mentor_id:
        raise UnauthorizedError(f"Only mentor {mentor_id} may {action}")


def require_admin_or_owner(actor: Actor, mentor_id: int, action: str) -> None:
    """Raise UnauthorizedError unless actor is an admin or the mentor mentor_id."""
    _check_actor(actor)
    if actor.role == Role.ADMIN:
        return
    if actor.id != mentor_id:
        raise UnauthorizedError(f"Only an admin or mentor {mentor_id} may {action}")


def scope_mentor(actor: Actor, mentor_id: Optional[int]) -> Optional[int]:
    """Return the mentor filter a query may use.

    Admins may ask for any mentor or for all of them. Mentors always see
    only their own records; asking for someone else's is refused.
    """
    _check_actor(actor)
    if actor.role == Role.ADMIN:
        return mentor_id
    if mentor_id is not None and mentor_id != actor.id:
        raise UnauthorizedError(f"Mentor {actor.id} may not view records of mentor {mentor_id}")
    return actor.id
