from django.core.exceptions import ValidationError


class TrustAccountingError(Exception):
    """Base for ledger/reconciliation errors that callers map to a message."""

    default_message = "Trust accounting operation failed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------- Immutability ----------
class ImmutableRecordError(TrustAccountingError):
    """Raised when a frozen record (system account, reconciled data) is edited."""

    default_message = "This record can no longer be changed."


class SystemAccountImmutable(ImmutableRecordError):
    default_message = "System accounts cannot be modified or deleted."


class StatementFinalized(ImmutableRecordError):
    default_message = "This bank statement has been reconciled and is locked."


# ---------- Periods ----------
class OverlapError(TrustAccountingError):
    default_message = "Date range overlaps an existing record."


class PeriodOverlap(OverlapError):
    """Financial year dates clash with another year of the same scheme."""

    def __init__(self, year_label):
        self.year_label = year_label
        super().__init__(
            f"Date range overlaps with existing financial year: {year_label}"
        )


# ---------- References ----------
class ReferentialIntegrityError(TrustAccountingError):
    default_message = "Record is still referenced and cannot be removed."


class AccountInUse(ReferentialIntegrityError):
    """Account still referenced by `count` transactions or transaction lines."""

    def __init__(self, count, kind="transaction"):
        self.count = count
        self.kind = kind
        super().__init__(
            f"Cannot delete account: it is referenced by {count} {kind}(s)"
        )


# ---------- Double entry ----------
class ImbalanceError(TrustAccountingError):
    """Raised when debits and credits disagree. Never auto-corrected."""

    def __init__(self, total_debits, total_credits, message=None):
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            message
            or f"Ledger is unbalanced: debits={total_debits}, credits={total_credits}"
        )


# ---------- Lookups ----------
class NotFoundError(TrustAccountingError):
    def __init__(self, model_name, pk):
        self.model_name = model_name
        self.pk = pk
        super().__init__(f"{model_name} {pk} was not found")


# ---------- Reconciliation ----------
class UnresolvedLinesError(TrustAccountingError):
    """Finalization attempted while bank lines are neither matched nor non-ledger."""

    def __init__(self, count):
        self.count = count
        super().__init__(
            f"Cannot finalize: {count} unmatched bank line(s) remain. "
            "Match them or mark them as non-ledger items first."
        )


# ---------- Maintenance invoice payment ----------
class InvoiceStampError(TrustAccountingError):
    """
    The payment transaction was recorded but stamping the invoice failed.
    The transaction is kept; the operator must link it to the invoice by hand.
    """

    def __init__(self, transaction, cause=None):
        self.transaction = transaction
        self.cause = cause
        super().__init__(
            f"Transaction {transaction.pk} created but invoice update failed: {cause}"
        )


def user_message(exc) -> str:
    """Turn a ledger error into the text shown to the operator."""
    if isinstance(exc, TrustAccountingError):
        return exc.message
    if isinstance(exc, ValidationError):
        return "; ".join(exc.messages)
    return "Unexpected error. Please try again."
