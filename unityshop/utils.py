import uuid
from datetime import datetime, timezone

CURRENCY_SYMBOL = '৳'

def normalize_code(code):
    """Promotion codes are compared uppercase with surrounding blanks removed."""
    if code is None:
        return ''
    return str(code).strip().upper()

def count_digits(text):
    if not text:
        return 0
    return sum(1 for ch in str(text) if ch.isdigit())

def format_money(amount):
    return f"{CURRENCY_SYMBOL}{amount}"

def utcnow():
    return datetime.now(timezone.utc)

def to_utc_naive(dt):
    # SQLite hands back naive datetimes even for timezone-aware columns
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

def provisional_code(prefix):
    return f"{prefix}-TMP-{uuid.uuid4().hex[:8].upper()}"

def sequential_code(prefix, row_id):
    return f"{prefix}-{row_id:04d}"

def parse_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default

def parse_bool(value, default=False):
    """JSON booleans pass through; form-style strings like 'false' or '0' are read as text."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'on'):
        return True
    if text in ('0', 'false', 'no', 'off', ''):
        return False
    return default
