"""Database layer for mentorpay."""

from mentorpay.database.base import Database
from mentorpay.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
