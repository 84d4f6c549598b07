import datetime
from decimal import Decimal

from trust_accounting.models import Account, Organisation, Scheme
from trust_accounting.services.accounts import seed_system_accounts
from trust_accounting.services.ledger import record_transaction


def make_scheme(number="SP 1001", name="Harbour View"):
    seed_system_accounts()  # idempotent, the data migration usually did it
    organisation, _ = Organisation.objects.get_or_create(
        slug="test-strata", defaults={"name": "Test Strata Management"}
    )
    return Scheme.objects.create(organisation=organisation, scheme_number=number, name=name)


def default_account(code):
    return Account.objects.defaults().get(code=code)


def receipt(scheme, amount, day, category="4000", fund_type="admin", **extra):
    data = {
        "transaction_type": "receipt",
        "fund_type": fund_type,
        "category": default_account(category) if isinstance(category, str) else category,
        "transaction_date": day,
        "amount": Decimal(amount),
        "description": extra.pop("description", "Levy receipt"),
    }
    data.update(extra)
    return record_transaction(scheme, data)


def payment(scheme, amount, day, category="6000", fund_type="admin", **extra):
    data = {
        "transaction_type": "payment",
        "fund_type": fund_type,
        "category": default_account(category) if isinstance(category, str) else category,
        "transaction_date": day,
        "amount": Decimal(amount),
        "description": extra.pop("description", "Contractor payment"),
    }
    data.update(extra)
    return record_transaction(scheme, data)


def d(text):
    return datetime.date.fromisoformat(text)
