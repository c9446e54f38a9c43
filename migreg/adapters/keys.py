"""
Conversion between slot start instants and storage keys.
"""

from datetime import datetime

import pendulum


def slot_key(start: datetime) -> datetime:
    """Naive UTC ``datetime`` identifying a slot in storage."""
    utc = pendulum.instance(start).in_timezone("UTC")
    return datetime(utc.year, utc.month, utc.day, utc.hour, utc.minute, utc.second, utc.microsecond)
