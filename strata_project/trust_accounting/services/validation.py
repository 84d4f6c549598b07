import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

CENT = Decimal("0.01")


# ------------------------------------
# Input coercion shared by the services
# ------------------------------------
def to_date(value, field="date") -> datetime.date:
    """Accept a date or an ISO `YYYY-MM-DD` string."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field} must be a valid date (YYYY-MM-DD)")


def to_amount(value, field="amount") -> Decimal:
    """
    Accept Decimal, int or numeric string; floats are refused so binary
    rounding never reaches the ledger. Rejects more than 2 decimal places.
    """
    if value is None or isinstance(value, (bool, float)):
        raise ValidationError(f"{field} must be a decimal amount")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a decimal amount")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a decimal amount")
    if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} must have at most 2 decimal places")
    return amount.quantize(CENT)


def require_choice(value, choices, field):
    allowed = [key for key, _ in choices]
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return value


def require_text(value, field, max_length=None):
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field} is required")
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} must be {max_length} characters or less")
    return text
