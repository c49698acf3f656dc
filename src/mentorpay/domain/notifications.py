"""Notification collaborator for receipt lifecycle events."""

import logging
from typing import Protocol

from mentorpay.domain.entities import ReceiptSentEvent

logger = logging.getLogger(__name__)


class ReceiptNotifier(Protocol):
    """Receives a fire-and-forget event when a receipt is sent."""

    def receipt_sent(self, event: ReceiptSentEvent) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes the event to the log."""

    def receipt_sent(self, event: ReceiptSentEvent) -> None:
        totals = event.totals
        logger.info(
            "receipt_sent_notification",
            extra={
                "receipt_id": event.receipt_id,
                "receipt_number": event.receipt_number,
                "mentor_id": event.mentor_id,
                "currency": totals.currency,
                "final_payout_minor": totals.final_payout.minor,
            },
        )
