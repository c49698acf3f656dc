"""Amount parsing utilities."""

import re
from decimal import Decimal, InvalidOperation

from mentorpay.domain.money import Money


def parse_amount(amount_str: str) -> Decimal:
    """Parse a major-unit amount string into a Decimal.

    Handles "1000", "1,000.50", "$1000" and "1000 USD".

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    cleaned = re.sub(r"[$€£¥,]", "", amount_str.strip())
    cleaned = re.sub(r"\s*[A-Za-z]{3}$", "", cleaned).strip()
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return amount


def parse_rate(amount_str: str, currency: str) -> Money:
    """Parse an hourly rate in major units into Money.

    Raises:
        ValueError: If the amount cannot be parsed or is not positive
    """
    money = Money.from_major(parse_amount(amount_str), currency)
    if not money.is_positive():
        raise ValueError(f"Rate must be positive, got '{amount_str}'")
    return money


def parse_percentage(value: str) -> Decimal:
    """Parse "10%" or "0.10" into the fraction 0.10.

    Raises:
        ValueError: If the value cannot be parsed
    """
    text = value.strip()
    is_percent = text.endswith("%")
    if is_percent:
        text = text[:-1].strip()
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Could not parse percentage '{value}'")
    if not number.is_finite():
        raise ValueError(f"Could not parse percentage '{value}'")
    return number / 100 if is_percent else number
