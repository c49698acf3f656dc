"""Mentor domain service."""

import logging
from typing import Optional

from mentorpay.database.base import Database
from mentorpay.domain.access import require_admin
from mentorpay.domain.audit import AuditLogService, diff_fields
from mentorpay.domain.entities import Actor, EntityType, Mentor
from mentorpay.domain.errors import NotFoundError, ValidationError, mentor_not_found
from mentorpay.domain.money import Money

logger = logging.getLogger(__name__)


class MentorService:
    """Service for managing mentors and their hourly rates."""

    def __init__(self, db: Database, currency: str = "USD"):
        """Initialize mentor service.

        Args:
            db: Database instance
            currency: Currency every mentor rate is held in
        """
        self.db = db
        self.currency = currency
        self.audit = AuditLogService(db)

    def _check_rate(self, hourly_rate: Money) -> None:
        if not isinstance(hourly_rate, Money):
            raise ValidationError(f"Hourly rate must be Money, got {type(hourly_rate).__name__}")
        if not hourly_rate.is_positive():
            raise ValidationError(f"Hourly rate must be positive, got {hourly_rate}")
        if hourly_rate.currency != self.currency:
            raise ValidationError(
                f"Hourly rate must be in {self.currency}, got {hourly_rate.currency}"
            )

    def create_mentor(
        self, actor: Actor, name: str, hourly_rate: Money, email: Optional[str] = None
    ) -> Mentor:
        """Register a mentor.

        Args:
            actor: Acting admin
            name: Unique mentor name
            hourly_rate: Hourly rate in the configured currency
            email: Optional contact email

        Returns:
            The created mentor

        Raises:
            ValidationError: If the name is empty or taken, or the rate is invalid
            UnauthorizedError: If actor is not an admin
        """
        require_admin(actor, "register mentors")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Mentor name cannot be empty")
        self._check_rate(hourly_rate)
        if self.db.get_mentor_by_name(name) is not None:
            raise ValidationError(f"Mentor with name '{name}' already exists")

        with self.db.transaction():
            mentor_id = self.db.create_mentor(
                name=name, email=email, hourly_rate_minor=hourly_rate.minor, currency=self.currency
            )
            self.audit.record(
                EntityType.MENTOR, mentor_id, "created", actor.id, description=f"Registered {name}"
            )
        logger.info("mentor_created", extra={"mentor_id": mentor_id, "actor_id": actor.id})
        return self.get_mentor(mentor_id)

    def get_mentor(self, mentor_id: int) -> Mentor:
        """Get mentor by ID.

        Raises:
            NotFoundError: If the mentor does not exist
        """
        mentor = self.db.get_mentor(mentor_id)
        if mentor is None:
            raise NotFoundError(mentor_not_found(mentor_id))
        return mentor

    def list_mentors(self) -> list[Mentor]:
        """List all mentors ordered by name."""
        return self.db.list_mentors()

    def change_rate(self, actor: Actor, mentor_id: int, hourly_rate: Money) -> Mentor:
        """Change a mentor's hourly rate.

        Only sessions created afterwards pick up the new rate; existing
        sessions keep the rate copied when they were created.

        Raises:
            NotFoundError: If the mentor does not exist
            ValidationError: If the rate is invalid
            UnauthorizedError: If actor is not an admin
        """
        require_admin(actor, "change mentor rates")
        self._check_rate(hourly_rate)
        mentor = self.get_mentor(mentor_id)
        changes = diff_fields({"hourly_rate": mentor.hourly_rate}, {"hourly_rate": hourly_rate})
        if not changes:
            return mentor

        with self.db.transaction():
            self.db.update_mentor_rate(mentor_id, hourly_rate.minor)
            self.audit.record(EntityType.MENTOR, mentor_id, "rate_changed", actor.id, changes=changes)
        logger.info(
            "mentor_rate_changed",
            extra={"mentor_id": mentor_id, "actor_id": actor.id, "hourly_rate_minor": hourly_rate.minor},
        )
        return self.get_mentor(mentor_id)
