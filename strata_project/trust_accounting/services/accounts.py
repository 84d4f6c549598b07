import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..conf import trust_account_code
from ..defaults import SYSTEM_ACCOUNTS
from ..exceptions import AccountInUse, NotFoundError, SystemAccountImmutable
from ..models import Account, TransactionLine, TrustTransaction
from .audit import log_action

logger = logging.getLogger(__name__)

# Fields an operator may set on an account
EDITABLE_FIELDS = ("code", "name", "account_type", "fund_type", "parent_id")


# ----------------------------
# Effective chart of accounts
# ----------------------------
def list_effective_accounts(scheme, account_type=None, include_inactive=False):
    """
    The scheme's own accounts merged with the organisation defaults.
    A scheme account replaces the default carrying the same code.
    Returns a list ordered by code.
    """
    own = Account.objects.for_scheme(scheme)
    defaults = Account.objects.defaults()
    if not include_inactive:
        own = own.active()
        defaults = defaults.active()
    if account_type:
        own = own.filter(account_type=account_type)
        defaults = defaults.filter(account_type=account_type)

    merged = {acct.code: acct for acct in defaults}
    merged.update({acct.code: acct for acct in own})  # scheme wins
    return sorted(merged.values(), key=lambda acct: acct.code)


def accounts_by_type(scheme, account_type):
    return list_effective_accounts(scheme, account_type=account_type)


def is_effective_account(scheme, account):
    """
    True if `account` is in the scheme's effective chart: one of its own
    rows, or a default no active scheme row overrides by code.
    """
    if account.scheme_id == scheme.pk:
        return True
    if account.scheme_id is not None:
        return False
    return not (
        Account.objects.for_scheme(scheme).active().filter(code=account.code).exists()
    )


def get_account(account_id):
    try:
        return Account.objects.get(pk=account_id)
    except (Account.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Account", account_id)


def _clean_account_data(data):
    unknown = set(data) - set(EDITABLE_FIELDS) - {"parent", "is_system"}
    if unknown:
        raise ValidationError(f"Unknown account fields: {', '.join(sorted(unknown))}")
    if data.get("is_system"):
        raise ValidationError("System accounts cannot be created by operators.")

    cleaned = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if "parent" in data:
        parent = data["parent"]
        cleaned["parent_id"] = parent.pk if parent is not None else None
    if "code" in cleaned:
        cleaned["code"] = str(cleaned["code"]).strip()
    if "name" in cleaned:
        cleaned["name"] = (cleaned["name"] or "").strip()
    # Blank fund means "both funds"
    if "fund_type" in cleaned and not cleaned["fund_type"]:
        cleaned["fund_type"] = None
    return cleaned


def _check_parent(scheme, parent_id, self_id=None):
    if parent_id is None:
        return
    if self_id is not None and parent_id == self_id:
        raise ValidationError("An account cannot be its own parent.")
    try:
        parent = Account.objects.get(pk=parent_id)
    except (Account.DoesNotExist, ValueError, TypeError):
        parent = None
    if parent is None or not is_effective_account(scheme, parent):
        raise ValidationError("Parent account must belong to the same scheme.")


def _check_duplicate_code(scheme, code, exclude_id=None):
    # Uniqueness is per scope: scheme rows vs. default rows.
    # Overriding a default's code from a scheme is allowed.
    qs = Account.objects.filter(code=code)
    qs = qs.filter(scheme=scheme) if scheme is not None else qs.defaults()
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    if qs.exists():
        raise ValidationError(f"An account with code {code} already exists.")


# ----------------------------
# Operator changes
# ----------------------------
def create_account(scheme, data, user=None) -> Account:
    """Create a non-system account owned by `scheme`."""
    cleaned = _clean_account_data(data)
    for required in ("code", "name", "account_type"):
        if not cleaned.get(required):
            raise ValidationError(f"{required} is required.")

    _check_parent(scheme, cleaned.get("parent_id"))
    _check_duplicate_code(scheme, cleaned["code"])

    with transaction.atomic():
        account = Account(scheme=scheme, is_system=False, is_active=True, **cleaned)
        account.save()  # full_clean runs the code/name validators
        log_action(action="create", instance=account, user=user, changes=cleaned)

    logger.info(
        "Account created",
        extra={"scheme_id": scheme.pk, "account_id": account.pk, "code": account.code},
    )
    return account


def update_account(account_id, data, user=None) -> Account:
    with transaction.atomic():
        try:
            account = Account.objects.select_for_update().get(pk=account_id)
        except (Account.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Account", account_id)

        if account.is_system:
            raise SystemAccountImmutable("System accounts cannot be modified")

        cleaned = _clean_account_data(data)
        if "parent_id" in cleaned:
            _check_parent(account.scheme, cleaned["parent_id"], self_id=account.pk)
        if "code" in cleaned and cleaned["code"] != account.code:
            _check_duplicate_code(account.scheme, cleaned["code"], exclude_id=account.pk)

        before = {k: getattr(account, k) for k in cleaned}
        for field, value in cleaned.items():
            setattr(account, field, value)
        account.save()
        log_action(
            action="update",
            instance=account,
            user=user,
            changes={"before": before, "after": cleaned},
        )
    return account


def soft_delete_account(account_id, user=None) -> Account:
    """
    Deactivate an account. Rows are never removed so history keeps
    pointing at a real account.
    """
    with transaction.atomic():
        try:
            account = Account.objects.select_for_update().get(pk=account_id)
        except (Account.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Account", account_id)

        if account.is_system:
            raise SystemAccountImmutable("System accounts cannot be deleted")

        # Category references are reported ahead of line references
        txn_count = TrustTransaction.objects.filter(category=account).count()
        if txn_count:
            raise AccountInUse(txn_count, kind="transaction")
        line_count = TransactionLine.objects.filter(account=account).count()
        if line_count:
            raise AccountInUse(line_count, kind="transaction line")

        account.is_active = False
        account.save(update_fields=["is_active"])
        log_action(action="deactivate", instance=account, user=user)

    logger.info("Account deactivated", extra={"account_id": account.pk})
    return account


# ----------------------------
# Lookups used by the ledger
# ----------------------------
def resolve_trust_account(scheme, fund_type) -> Account:
    """The fund's cash-at-bank account; a scheme override beats the default."""
    code = trust_account_code(fund_type)
    account = (
        Account.objects.for_scheme(scheme).active().filter(code=code).first()
        or Account.objects.defaults().active().filter(code=code).first()
    )
    if account is None:
        raise ValidationError(
            f"No trust account (code {code}) configured for the {fund_type} fund"
        )
    return account


def seed_system_accounts() -> int:
    """Create any missing organisation-wide system accounts. Returns how many."""
    created_count = 0
    with transaction.atomic():
        for code, name, account_type, fund_type in SYSTEM_ACCOUNTS:
            _, created = Account.objects.get_or_create(
                scheme=None,
                code=code,
                defaults={
                    "name": name,
                    "account_type": account_type,
                    "fund_type": fund_type,
                    "is_system": True,
                },
            )
            created_count += int(created)
    if created_count:
        logger.info("System accounts seeded", extra={"created": created_count})
    return created_count
