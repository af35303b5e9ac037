from __future__ import annotations

import datetime as dt
import math
import re
from decimal import ROUND_HALF_UP, Context, Decimal, getcontext
from numbers import Real
from typing import Optional

import pandas as pd


_NON_NUMERIC = re.compile(r"[^\d.\-]")
_LEADING_FLOAT = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DAY_FIRST_DATETIME = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})\s+(\d{1,2})[:.](\d{1,2})(?:[:.](\d{1,2}))?")
_CLOCK_TIME = re.compile(r"^(\d{1,2})[:.](\d{1,2})(?:[:.](\d{1,2}))?$")
_PLAIN_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")

# Numbers above this are epoch milliseconds rather than an hour value.
EPOCH_MS_THRESHOLD = 1_000_000_000


def parse_cost(value: object) -> float:
    """Coerce a cost cell (number, "$1,234.50", None, ...) to a finite float.

    Strings keep only digits, '.' and '-' and then read the longest leading
    float, so "1.2.3" -> 1.2. Anything unusable is 0. Never raises.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (Real, Decimal)):
        try:
            out = float(value)
        except (TypeError, ValueError, OverflowError):
            return 0.0
        return out if math.isfinite(out) else 0.0
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        match = _LEADING_FLOAT.match(cleaned)
        if not match:
            return 0.0
        try:
            out = float(match.group(0))
        except ValueError:
            return 0.0
        return out if math.isfinite(out) else 0.0
    return 0.0


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    d = Decimal(str(value))
    if not d.is_finite():
        return None
    # quantize fails once the result needs more digits than the context precision
    prec = max(getcontext().prec, d.adjusted() + ndigits + 2)
    q = Decimal(10) ** -ndigits
    return float(d.quantize(q, rounding=ROUND_HALF_UP, context=Context(prec=prec)))


def coerce_timestamp(value: object) -> Optional[dt.datetime]:
    """Return a datetime for datetime/date/ISO-ish string input, else None."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            ts = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
        if ts is None or pd.isna(ts):
            return None
        return ts.to_pydatetime()
    return None


def coerce_date(value: object) -> Optional[dt.date]:
    """Calendar date from a YYYY-MM-DD string, date or datetime; None otherwise."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not _ISO_DATE.match(text):
            return None
        try:
            return dt.date.fromisoformat(text)
        except ValueError:
            return None
    return None


def _valid_hour(hour: Optional[int]) -> Optional[int]:
    if hour is None or hour < 0 or hour > 23:
        return None
    return hour


def parse_contact_hour(value: object) -> Optional[int]:
    """Hour of day (0-23) from a time-of-contact cell, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else _valid_hour(value.hour)
    if isinstance(value, dt.datetime):
        return _valid_hour(value.hour)
    if isinstance(value, dt.time):
        return _valid_hour(value.hour)
    if isinstance(value, (Real, Decimal)):
        number = float(value)
        if not math.isfinite(number):
            return None
        if number > EPOCH_MS_THRESHOLD:
            try:
                stamp = dt.datetime.fromtimestamp(number / 1000.0, tz=dt.timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None
            return _valid_hour(stamp.hour)
        return _valid_hour(math.floor(number))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        match = _DAY_FIRST_DATETIME.search(text)
        if match:
            return _valid_hour(int(match.group(4)))
        match = _CLOCK_TIME.match(text)
        if match:
            return _valid_hour(int(match.group(1)))
        if _PLAIN_NUMBER.match(text):
            return _valid_hour(math.floor(float(text)))
        stamp = coerce_timestamp(text)
        if stamp is not None:
            return _valid_hour(stamp.hour)
    return None
