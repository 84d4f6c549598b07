import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import DatabaseError, models, transaction
from django.utils import timezone

from ..conf import get_setting
from ..exceptions import (ImbalanceError, ImmutableRecordError,
                          InvoiceStampError, NotFoundError)
from ..models import (Account, BankStatementLine, MaintenanceInvoice,
                      TransactionLine, TrustTransaction)
from ..models.account import FUND_TYPES
from ..models.transaction import LINE_SIDES, PAYMENT_METHODS, TRANSACTION_TYPES
from .accounts import get_account, is_effective_account, resolve_trust_account
from .audit import log_action
from .validation import require_choice, require_text, to_amount, to_date

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Account type a receipt/payment category must have
CATEGORY_TYPE_FOR = {
    "receipt": "income",
    "payment": "expense",
}


@dataclass(frozen=True)
class FundActivity:
    receipts: Decimal = ZERO
    payments: Decimal = ZERO

    @property
    def net(self):
        return self.receipts - self.payments


@dataclass(frozen=True)
class TransactionSummary:
    funds: dict = field(default_factory=dict)  # fund_type -> FundActivity
    total_receipts: Decimal = ZERO
    total_payments: Decimal = ZERO

    @property
    def net(self):
        return self.total_receipts - self.total_payments


# ----------------------------
# Validation helpers
# ----------------------------
def _as_account(value, label="account") -> Account:
    # Always re-read: a caller's instance may predate a deactivation
    if isinstance(value, Account):
        value = value.pk
    if value in (None, ""):
        raise ValidationError(f"{label} is required")
    return get_account(value)


def _check_usable_account(scheme, account, fund_type, label="account"):
    if not is_effective_account(scheme, account):
        raise ValidationError(f"{label} {account.code} does not belong to this scheme")
    if not account.is_active:
        raise ValidationError(f"{label} {account.code} is inactive")
    # Fund segregation: a fund-specific account only takes its own fund's money
    if account.fund_type and account.fund_type != fund_type:
        raise ValidationError(
            f"{label} {account.code} belongs to the {account.fund_type} fund, "
            f"not the {fund_type} fund"
        )


def _normalise_payment_method(transaction_type, method):
    valid = [key for key, _ in PAYMENT_METHODS]
    if method in valid:
        return method
    if transaction_type == "payment":
        return get_setting("DEFAULT_PAYMENT_METHOD")
    return None


def _clean_journal_lines(scheme, fund_type, raw_lines):
    if not raw_lines or len(raw_lines) < 2:
        raise ValidationError("A journal needs at least two lines")

    lines = []
    for index, raw in enumerate(raw_lines, start=1):
        account = _as_account(
            raw.get("account", raw.get("account_id")), f"Line {index} account"
        )
        _check_usable_account(scheme, account, fund_type, f"Line {index} account")
        lines.append(
            {
                "account": account,
                "side": require_choice(raw.get("side"), LINE_SIDES, f"Line {index} side"),
                "amount": to_amount(raw.get("amount"), f"Line {index} amount"),
                "description": (raw.get("description") or "").strip() or None,
            }
        )
        if lines[-1]["amount"] <= 0:
            raise ValidationError(f"Line {index} amount must be greater than zero")

    total_debits = sum((l["amount"] for l in lines if l["side"] == "debit"), ZERO)
    total_credits = sum((l["amount"] for l in lines if l["side"] == "credit"), ZERO)
    if total_debits != total_credits:
        raise ImbalanceError(
            total_debits,
            total_credits,
            f"Journal does not balance: debits={total_debits}, credits={total_credits}",
        )
    return lines, total_debits


# ----------------------------
# Line derivation
# ----------------------------
def derive_lines(txn, trust_account=None, journal_lines=None):
    """
    Build the (unsaved) double-entry lines for a transaction.
      receipt: debit fund trust account, credit category
      payment: debit category, credit fund trust account
      journal: the explicit lines as given
    """
    if txn.transaction_type == "journal":
        return [
            TransactionLine(
                transaction=txn,
                account=line["account"],
                side=line["side"],
                amount=line["amount"],
                description=line.get("description") or txn.description,
            )
            for line in journal_lines or []
        ]

    if trust_account is None:
        trust_account = resolve_trust_account(txn.scheme, txn.fund_type)

    if txn.transaction_type == "receipt":
        debit_account, credit_account = trust_account, txn.category
    else:
        debit_account, credit_account = txn.category, trust_account

    return [
        TransactionLine(
            transaction=txn,
            account=debit_account,
            side="debit",
            amount=txn.amount,
            description=txn.description,
        ),
        TransactionLine(
            transaction=txn,
            account=credit_account,
            side="credit",
            amount=txn.amount,
            description=txn.description,
        ),
    ]


# ----------------------------
# Ledger writes
# ----------------------------
def record_transaction(scheme, data, user=None) -> TrustTransaction:
    """
    Validate and persist a transaction together with its derived lines.
    Header and lines commit together or not at all.
    """
    fund_type = require_choice(data.get("fund_type"), FUND_TYPES, "fund_type")
    transaction_type = require_choice(
        data.get("transaction_type"), TRANSACTION_TYPES, "transaction_type"
    )
    transaction_date = to_date(data.get("transaction_date"), "transaction_date")
    description = require_text(data.get("description"), "description")
    gst_amount = to_amount(data.get("gst_amount") or 0, "gst_amount")

    category = None
    trust_account = None
    journal_lines = None
    if transaction_type == "journal":
        journal_lines, total = _clean_journal_lines(
            scheme, fund_type, data.get("lines")
        )
        amount = total
        if data.get("amount") is not None and to_amount(data["amount"]) != total:
            raise ValidationError("Journal amount must equal the total of its debit lines")
        raw_category = data.get("category", data.get("category_id"))
        if raw_category not in (None, ""):
            category = _as_account(raw_category, "category")
            _check_usable_account(scheme, category, fund_type, "category")
    else:
        amount = to_amount(data.get("amount"))
        category = _as_account(data.get("category", data.get("category_id")), "category")
        _check_usable_account(scheme, category, fund_type, "category")
        expected_type = CATEGORY_TYPE_FOR[transaction_type]
        if category.account_type != expected_type:
            raise ValidationError(
                f"A {transaction_type} category must be an {expected_type} account"
            )
        trust_account = resolve_trust_account(scheme, fund_type)

    if amount <= 0:
        raise ValidationError("amount must be greater than zero")
    if gst_amount < 0 or gst_amount > amount:
        raise ValidationError("gst_amount must be between 0 and the amount")

    with transaction.atomic():
        txn = TrustTransaction(
            scheme=scheme,
            transaction_date=transaction_date,
            transaction_type=transaction_type,
            fund_type=fund_type,
            category=category,
            amount=amount,
            gst_amount=gst_amount,
            description=description,
            reference=(data.get("reference") or "").strip() or None,
            payment_method=_normalise_payment_method(
                transaction_type, data.get("payment_method")
            ),
            lot_reference=(data.get("lot_reference") or "").strip() or None,
            recorded_by=user if getattr(user, "pk", None) else None,
        )
        txn.save()
        TransactionLine.objects.bulk_create(
            derive_lines(txn, trust_account=trust_account, journal_lines=journal_lines)
        )

        # Persisted lines must balance or the whole insert is undone
        total_debits, total_credits = txn.compute_totals()
        if total_debits != total_credits:
            raise ImbalanceError(total_debits, total_credits)

        log_action(
            action="record",
            instance=txn,
            user=user,
            changes={
                "transaction_type": transaction_type,
                "fund_type": fund_type,
                "amount": amount,
                "category": category.code if category else None,
            },
        )

    logger.info(
        "Transaction recorded",
        extra={
            "scheme_id": scheme.pk,
            "transaction_id": txn.pk,
            "transaction_type": transaction_type,
            "fund_type": fund_type,
            "amount": str(amount),
        },
    )
    return txn


def void_transaction(transaction_id, user=None) -> TrustTransaction:
    """
    Soft delete a transaction. Its lines stay but drop out of every report.
    Reconciled or bank-matched transactions cannot be voided.
    """
    with transaction.atomic():
        try:
            txn = TrustTransaction.objects.select_for_update().get(pk=transaction_id)
        except (TrustTransaction.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Transaction", transaction_id)

        if txn.is_voided:
            raise ValidationError("Transaction is already voided")
        if txn.is_reconciled:
            raise ImmutableRecordError("Cannot delete a reconciled transaction")
        if BankStatementLine.objects.filter(matched_transaction=txn).exists():
            raise ImmutableRecordError(
                "Transaction is matched to a bank statement line; unmatch it first"
            )

        txn.deleted_at = timezone.now()
        txn.save(update_fields=["deleted_at"])
        log_action(action="void", instance=txn, user=user)

    logger.info(
        "Transaction voided",
        extra={"scheme_id": txn.scheme_id, "transaction_id": txn.pk},
    )
    return txn


# ----------------------------
# Ledger reads
# ----------------------------
def list_transactions(
    scheme,
    start=None,
    end=None,
    transaction_type=None,
    fund_type=None,
    category=None,
    is_reconciled=None,
):
    qs = TrustTransaction.objects.for_scheme(scheme).live().select_related("category")
    if start is not None:
        qs = qs.filter(transaction_date__gte=to_date(start, "start"))
    if end is not None:
        qs = qs.filter(transaction_date__lte=to_date(end, "end"))
    if transaction_type:
        qs = qs.filter(transaction_type=transaction_type)
    if fund_type:
        qs = qs.filter(fund_type=fund_type)
    if category is not None:
        qs = qs.filter(category=category)
    if is_reconciled is not None:
        qs = qs.filter(is_reconciled=is_reconciled)
    return qs.order_by("-transaction_date", "-created_at")


def transaction_summary(scheme, start=None, end=None) -> TransactionSummary:
    """Receipts and payments per fund, journals excluded."""
    qs = list_transactions(scheme, start=start, end=end).order_by()
    rows = qs.values("fund_type", "transaction_type").annotate(total=models.Sum("amount"))

    totals = {}
    for row in rows:
        totals[(row["fund_type"], row["transaction_type"])] = row["total"] or ZERO

    funds = {}
    for fund_type, _ in FUND_TYPES:
        funds[fund_type] = FundActivity(
            receipts=totals.get((fund_type, "receipt"), ZERO),
            payments=totals.get((fund_type, "payment"), ZERO),
        )
    return TransactionSummary(
        funds=funds,
        total_receipts=sum((f.receipts for f in funds.values()), ZERO),
        total_payments=sum((f.payments for f in funds.values()), ZERO),
    )


# ----------------------------
# Maintenance invoice payment
# ----------------------------
def pay_maintenance_invoice(invoice, payment, user=None) -> TrustTransaction:
    """
    Record the payment of a maintenance invoice, then stamp the invoice.
    If stamping fails the payment stays recorded and InvoiceStampError
    carries it back to the caller.
    """
    stamp_error = None
    with transaction.atomic():
        # The row lock makes a concurrent second payment wait, then see paid_at
        try:
            locked = MaintenanceInvoice.objects.select_for_update().get(pk=invoice.pk)
        except (MaintenanceInvoice.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("MaintenanceInvoice", invoice.pk)
        if locked.is_paid:
            raise ValidationError("This invoice has already been paid")

        payee = locked.payee_name or "Unknown"
        description = " - ".join(
            part for part in ("Maintenance payment", locked.title, payee) if part
        )
        if locked.invoice_number:
            description += f" (Inv: {locked.invoice_number})"

        txn = record_transaction(
            locked.scheme,
            {
                "transaction_type": "payment",
                "fund_type": payment.get("fund_type"),
                "category": payment.get("category", payment.get("category_id")),
                "transaction_date": payment.get("payment_date"),
                "amount": locked.invoice_amount,
                "gst_amount": locked.gst_amount or 0,
                "description": description,
                "reference": (payment.get("reference") or "").strip()
                or locked.invoice_number
                or None,
                "payment_method": payment.get("payment_method"),
            },
            user=user,
        )

        # Savepoint: a failed stamp must not undo the recorded payment
        try:
            with transaction.atomic():
                locked.payment_reference = txn
                locked.paid_at = timezone.now()
                locked.save(update_fields=["payment_reference", "paid_at"])
        except DatabaseError as exc:
            stamp_error = exc

    if stamp_error is not None:
        logger.error(
            "Invoice stamp failed after payment was recorded",
            extra={"invoice_id": invoice.pk, "transaction_id": txn.pk},
            exc_info=stamp_error,
        )
        raise InvoiceStampError(txn, stamp_error) from stamp_error

    invoice.payment_reference = txn
    invoice.paid_at = locked.paid_at
    logger.info(
        "Maintenance invoice paid",
        extra={"invoice_id": invoice.pk, "transaction_id": txn.pk},
    )
    return txn
