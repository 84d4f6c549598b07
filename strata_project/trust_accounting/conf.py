from decimal import Decimal

from django.conf import settings

# Defaults for the TRUST_ACCOUNTING settings dict.
# Projects override individual keys; missing keys fall back to these.
DEFAULTS = {
    # Bank lines match transactions dated within +/- this many days
    "MATCH_WINDOW_DAYS": 3,
    # Largest amount difference still treated as equal (currency rounding)
    "MATCH_AMOUNT_TOLERANCE": "0.01",
    # Cash-at-bank (trust) account code per fund
    "TRUST_ACCOUNT_CODES": {
        "admin": "1100",
        "capital_works": "1200",
    },
    # Applied to payments whose method is missing or unknown
    "DEFAULT_PAYMENT_METHOD": "eft",
}


def get_setting(name):
    overrides = getattr(settings, "TRUST_ACCOUNTING", {}) or {}
    return overrides.get(name, DEFAULTS[name])


def match_window_days() -> int:
    return int(get_setting("MATCH_WINDOW_DAYS"))


def match_amount_tolerance() -> Decimal:
    return Decimal(str(get_setting("MATCH_AMOUNT_TOLERANCE")))


def trust_account_code(fund_type: str) -> str:
    return get_setting("TRUST_ACCOUNT_CODES")[fund_type]
