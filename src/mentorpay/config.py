"""Runtime configuration for the payout engine."""

import os
import re
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional

from mentorpay.domain.errors import ValidationError
from mentorpay.domain.payout import PayoutCalculator, TaxBase
from mentorpay.utils.amount_parser import parse_percentage

DB_PATH_ENV = "MENTORPAY_DB_PATH"

_PREFIX_RE = re.compile(r"^[A-Z]{2,6}$")


@dataclass(frozen=True)
class PayoutPolicy:
    """Fee, tax and numbering policy applied by the services."""

    platform_fee_pct: Decimal = Decimal("0.10")
    tax_pct: Decimal = Decimal("0.18")
    tax_base: TaxBase = TaxBase.BASE
    currency: str = "USD"
    receipt_prefix: str = "RCP"
    payout_prefix: str = "PAY"

    def __post_init__(self):
        # Building the calculator validates the percentages and their sum.
        self.calculator()
        for label, prefix in (("Receipt", self.receipt_prefix), ("Payout", self.payout_prefix)):
            if not _PREFIX_RE.match(prefix):
                raise ValidationError(f"{label} prefix must be 2-6 uppercase letters, got '{prefix}'")
        if self.receipt_prefix == self.payout_prefix:
            raise ValidationError(
                f"Receipt and payout prefixes must differ, both are '{self.receipt_prefix}'"
            )
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValidationError(f"Invalid currency code '{self.currency}'")

    def calculator(self) -> PayoutCalculator:
        return PayoutCalculator(self.platform_fee_pct, self.tax_pct, self.tax_base)


def _percentage(env: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return parse_percentage(raw)
    except ValueError as e:
        raise ValidationError(f"{name}: {e}")


def load_policy(environ: Optional[Mapping[str, str]] = None) -> PayoutPolicy:
    """Build a PayoutPolicy from MENTORPAY_* environment variables.

    Unset variables keep their defaults.

    Raises:
        ValidationError: If a value cannot be parsed or is out of range
    """
    env = os.environ if environ is None else environ
    defaults = PayoutPolicy()

    tax_base_raw = env.get("MENTORPAY_TAX_BASE", defaults.tax_base.value)
    try:
        tax_base = TaxBase(tax_base_raw.strip().lower())
    except ValueError:
        choices = ", ".join(t.value for t in TaxBase)
        raise ValidationError(f"Unknown tax base '{tax_base_raw}'. Supported: {choices}")

    return PayoutPolicy(
        platform_fee_pct=_percentage(env, "MENTORPAY_PLATFORM_FEE_PCT", defaults.platform_fee_pct),
        tax_pct=_percentage(env, "MENTORPAY_TAX_PCT", defaults.tax_pct),
        tax_base=tax_base,
        currency=env.get("MENTORPAY_CURRENCY", defaults.currency).strip().upper(),
        receipt_prefix=env.get("MENTORPAY_RECEIPT_PREFIX", defaults.receipt_prefix).strip().upper(),
        payout_prefix=env.get("MENTORPAY_PAYOUT_PREFIX", defaults.payout_prefix).strip().upper(),
    )


def default_database_path(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return MENTORPAY_DB_PATH, falling back to ~/.mentorpay/mentorpay.db."""
    env = os.environ if environ is None else environ
    database_path = env.get(DB_PATH_ENV)
    if database_path:
        return database_path

    db_dir = Path.home() / ".mentorpay"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "mentorpay.db")
