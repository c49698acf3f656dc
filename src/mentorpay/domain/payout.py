"""Payout calculation.

Pure functions mapping a rate and a duration to a payout breakdown, and a set
of per-session breakdowns to an aggregate. No I/O happens here.
"""

from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from mentorpay.domain.entities import AggregateBreakdown, PayoutBreakdown, Session
from mentorpay.domain.errors import ValidationError
from mentorpay.domain.money import Money, Number, round_minor, sum_money, to_decimal

MINUTES_PER_HOUR = 60


class TaxBase(str, Enum):
    """Amount that the tax percentage applies to."""

    BASE = "base"
    NET_OF_FEE = "net_of_fee"


def _validate_pct(value: Number, name: str) -> Decimal:
    pct = to_decimal(value)
    if pct < 0 or pct > 1:
        raise ValidationError(f"{name} must be between 0 and 1, got {pct}")
    return pct


def compute_session_payout(
    rate: Money,
    duration_minutes: int,
    platform_fee_pct: Number,
    tax_pct: Number,
    tax_base: TaxBase = TaxBase.BASE,
) -> PayoutBreakdown:
    """Compute the payout breakdown for one session.

    Args:
        rate: Hourly rate (adjusted rate when one is set)
        duration_minutes: Session length in whole minutes
        platform_fee_pct: Platform fee as a fraction in [0, 1]
        tax_pct: Tax as a fraction in [0, 1]
        tax_base: Whether tax applies to the base amount or to base minus fee

    Returns:
        PayoutBreakdown where final = base - fee - taxes exactly

    Raises:
        ValidationError: If rate or duration is not positive, a percentage
            is outside [0, 1], or fee plus tax on base exceeds the base
    """
    if not isinstance(rate, Money):
        raise ValidationError(f"Rate must be Money, got {type(rate).__name__}")
    if not rate.is_positive():
        raise ValidationError(f"Rate must be positive, got {rate}")
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError(f"Duration must be whole minutes, got {duration_minutes!r}")
    if duration_minutes <= 0:
        raise ValidationError(f"Duration must be positive, got {duration_minutes}")
    fee_pct = _validate_pct(platform_fee_pct, "Platform fee percentage")
    tax = _validate_pct(tax_pct, "Tax percentage")
    tax_base = TaxBase(tax_base)
    if tax_base == TaxBase.BASE and fee_pct + tax > 1:
        raise ValidationError(
            f"Platform fee ({fee_pct}) plus tax ({tax}) on the base amount exceeds 100%"
        )

    currency = rate.currency
    base = Money(round_minor(Decimal(rate.minor) * duration_minutes / MINUTES_PER_HOUR), currency)
    fee = base.multiply(fee_pct)
    taxable = base if tax_base == TaxBase.BASE else base - fee
    # Rounding both components up must not push the final amount below zero.
    taxes = Money(min(taxable.multiply(tax).minor, (base - fee).minor), currency)

    return PayoutBreakdown(
        base_payout=base,
        platform_fee=fee,
        taxes=taxes,
        final_payout=base - fee - taxes,
    )


def sum_breakdowns(breakdowns: Iterable[PayoutBreakdown], currency: str) -> PayoutBreakdown:
    """Sum each component independently across breakdowns."""
    items = list(breakdowns)
    return PayoutBreakdown(
        base_payout=sum_money((b.base_payout for b in items), currency),
        platform_fee=sum_money((b.platform_fee for b in items), currency),
        taxes=sum_money((b.taxes for b in items), currency),
        final_payout=sum_money((b.final_payout for b in items), currency),
    )


def aggregate_sessions(sessions: Sequence[Session], currency: str) -> AggregateBreakdown:
    """Aggregate the stored breakdowns of approved sessions.

    The per-session breakdown locked in at approval is summed as-is, so a
    later change to the mentor's rate never alters the aggregate.

    Raises:
        ValidationError: If a session has no stored breakdown
    """
    missing = [s.id for s in sessions if s.payout is None]
    if missing:
        raise ValidationError(
            f"Sessions without a payout breakdown cannot be aggregated: {missing}"
        )
    return AggregateBreakdown(
        breakdown=sum_breakdowns((s.payout for s in sessions), currency),
        session_count=len(sessions),
        total_minutes=sum(s.duration_minutes for s in sessions),
    )


class PayoutCalculator:
    """Payout calculator bound to a fee/tax policy."""

    def __init__(self, platform_fee_pct: Number, tax_pct: Number, tax_base: TaxBase = TaxBase.BASE):
        self.platform_fee_pct = _validate_pct(platform_fee_pct, "Platform fee percentage")
        self.tax_pct = _validate_pct(tax_pct, "Tax percentage")
        self.tax_base = TaxBase(tax_base)
        if self.tax_base == TaxBase.BASE and self.platform_fee_pct + self.tax_pct > 1:
            raise ValidationError(
                f"Platform fee ({self.platform_fee_pct}) plus tax ({self.tax_pct}) "
                "on the base amount exceeds 100%"
            )

    def for_session(self, rate: Money, duration_minutes: int) -> PayoutBreakdown:
        return compute_session_payout(
            rate, duration_minutes, self.platform_fee_pct, self.tax_pct, self.tax_base
        )

    def aggregate(self, sessions: Sequence[Session], currency: str) -> AggregateBreakdown:
        return aggregate_sessions(sessions, currency)
