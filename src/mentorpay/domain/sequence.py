"""Human-readable sequential numbering scoped to a period."""

import logging
import re
from datetime import datetime
from typing import Optional

from mentorpay.database.base import Database
from mentorpay.domain.errors import ValidationError

logger = logging.getLogger(__name__)

RECEIPT_PREFIX = "RCP"
PAYOUT_PREFIX = "PAY"

_PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def period_key(moment: datetime) -> str:
    """Return the "YYYY-MM" period a moment falls in."""
    return moment.strftime("%Y-%m")


def format_number(prefix: str, period: str, sequence: int) -> str:
    """Format as PREFIX-YY-MM-NNNN, e.g. RCP-25-05-0001."""
    _validate_period(period)
    year, month = period.split("-")
    return f"{prefix}-{year[2:]}-{month}-{sequence:04d}"


def _validate_period(period: str) -> None:
    if not isinstance(period, str) or not _PERIOD_RE.match(period):
        raise ValidationError(f"Period key must look like YYYY-MM, got {period!r}")


class SequenceAllocator:
    """Allocates per-period sequence numbers for one prefix.

    Numbers come from the store's atomic increment, never from counting
    existing rows. A number handed out is never handed out again, even if
    the document it was meant for is never written.
    """

    def __init__(self, db: Database, prefix: str = RECEIPT_PREFIX):
        self.db = db
        self.prefix = prefix

    def _key(self, period: str) -> str:
        return f"{self.prefix}:{period}"

    def next(self, period: str) -> int:
        """Return the next sequence number for period, starting at 1."""
        _validate_period(period)
        return self.db.allocate_sequence(self._key(period))

    def next_number(self, moment: datetime) -> str:
        """Allocate and format the next identifier for the period of moment."""
        period = period_key(moment)
        number = format_number(self.prefix, period, self.next(period))
        logger.debug("number_allocated", extra={"number": number})
        return number

    def current(self, period: str) -> Optional[int]:
        """Return the last number allocated for period, or None."""
        _validate_period(period)
        return self.db.current_sequence(self._key(period))
