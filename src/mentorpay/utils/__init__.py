"""Utility functions for mentorpay."""

from mentorpay.utils.date_parser import parse_date, parse_datetime
from mentorpay.utils.amount_parser import parse_amount, parse_percentage

__all__ = ["parse_date", "parse_datetime", "parse_amount", "parse_percentage"]
