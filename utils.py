import re
import time
import secrets
import string
from datetime import datetime, time as dt_time
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser, tz


REFERRAL_CODE_PREFIX = "PSS"

# largest value a Numeric(15, 2) money column holds
MAX_MONEY_AMOUNT = Decimal("9999999999999.99")


def validate_email(email):
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email or "") is not None


def validate_phone(phone):
    return re.match(r'^\+?\d{9,15}$', phone or "") is not None


def name_initials(full_name: str) -> str:
    return "".join(part[0] for part in full_name.split() if part).upper()


def generate_referral_code(full_name: str, exists=None) -> str:
    """
    PSS-<initials><last 4 digits of the millisecond clock>.

    `exists` is a callable used to check uniqueness; on a clash the time
    suffix is replaced by random digits (10 tries) before widening it.
    """
    initials = name_initials(full_name)
    suffix = str(int(time.time() * 1000))[-4:]
    code = f"{REFERRAL_CODE_PREFIX}-{initials}{suffix}"
    if exists is None or not exists(code):
        return code

    for _ in range(10):
        suffix = "".join(secrets.choice(string.digits) for _ in range(4))
        code = f"{REFERRAL_CODE_PREFIX}-{initials}{suffix}"
        if not exists(code):
            return code
    # fallback
    suffix = "".join(secrets.choice(string.digits) for _ in range(8))
    return f"{REFERRAL_CODE_PREFIX}-{initials}{suffix}"


def to_decimal(value):
    """Parse a money value; returns None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_query_datetime(value, end_of_day=False):
    """
    Parse an ISO date/datetime query parameter into a naive UTC datetime.
    A bare date ("2024-05-01") means the whole day: midnight for a start
    bound, 23:59:59.999999 for an end bound.
    """
    if not value:
        return None
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz.UTC).replace(tzinfo=None)
    if end_of_day and len(value.strip()) == 10:
        parsed = datetime.combine(parsed.date(), dt_time.max)
    return parsed
