from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import SchemeManager
from .account import FUND_TYPES
from .scheme import Scheme
from .transaction import TrustTransaction

STATEMENT_STATUS = [
    ("uploaded", "Uploaded"),  # header row written, lines not yet stored
    ("lines_imported", "Lines imported"),
    ("in_progress", "Reconciliation in progress"),  # at least one match made
    ("reconciled", "Reconciled"),  # terminal, lines frozen
]

RECONCILIATION_STATUS = [
    ("in_progress", "In progress"),
    ("reconciled", "Reconciled"),
]

# Bank lines that legitimately have no ledger transaction
NON_LEDGER_REASONS = [
    ("bank_fee", "Bank fee"),
    ("interest", "Interest"),
    ("other", "Other"),
]


# ---------- Banking ----------
class BankStatement(models.Model):
    """A bank statement for one fund's trust bank account."""

    scheme = models.ForeignKey(
        Scheme, on_delete=models.PROTECT, related_name="bank_statements"
    )
    fund_type = models.CharField(max_length=20, choices=FUND_TYPES)
    statement_date = models.DateField()
    opening_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    closing_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    status = models.CharField(
        max_length=20, choices=STATEMENT_STATUS, default="uploaded"
    )
    # Rows dropped during import (bad date or no amount)
    skipped_rows = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    objects = SchemeManager()

    class Meta:
        indexes = [
            models.Index(fields=["scheme", "statement_date"], name="stmt_scheme_date_idx"),
            models.Index(fields=["scheme", "fund_type"], name="stmt_scheme_fund_idx"),
        ]
        ordering = ("-statement_date", "-uploaded_at")

    def __str__(self):
        return f"{self.scheme.scheme_number} {self.fund_type} {self.statement_date} ({self.status})"

    @property
    def is_reconciled(self):
        return self.status == "reconciled"

    def transition_to(self, new_status):
        # Current state vs. allowed next states
        allowed = {
            "uploaded": ["lines_imported"],
            "lines_imported": ["in_progress", "reconciled"],
            "in_progress": ["reconciled"],
            "reconciled": [],  # terminal
        }
        if new_status == self.status:
            return self
        # Look up what states are allowed from current self.status
        if new_status not in allowed.get(self.status, []):
            raise ValidationError(
                f"Cannot go from {self.status} to {new_status}")

        self.status = new_status
        self.save(update_fields=["status"])
        return self


class BankStatementLine(models.Model):
    """
    One line of a bank statement as the bank reported it.
    Bank convention: debit = money out (payment), credit = money in (receipt).
    """

    statement = models.ForeignKey(
        BankStatement, on_delete=models.CASCADE, related_name="lines"
    )
    line_date = models.DateField()
    description = models.CharField(max_length=500, blank=True, default="")
    debit_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    credit_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    # Balance as declared by the bank, when the export has one
    running_balance = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    matched = models.BooleanField(default=False)
    # OneToOne: a transaction can be claimed by at most one bank line
    matched_transaction = models.OneToOneField(
        TrustTransaction,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="bank_line",
    )
    # Set for fees/interest that will never have a ledger transaction
    non_ledger_reason = models.CharField(
        max_length=20, choices=NON_LEDGER_REASONS, null=True, blank=True
    )

    class Meta:
        indexes = [
            models.Index(fields=["statement", "matched"], name="bsl_statement_matched_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(debit_amount__gte=0) &
                    models.Q(credit_amount__gte=0)
                ),
                name="bsl_non_negative_amounts",
            ),
            # Exactly one side carries the amount
            models.CheckConstraint(
                condition=(
                    (models.Q(debit_amount__gt=0) & models.Q(credit_amount=0)) |
                    (models.Q(debit_amount=0) & models.Q(credit_amount__gt=0))
                ),
                name="bsl_debit_xor_credit",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(matched=False, matched_transaction__isnull=True) |
                    models.Q(matched=True, matched_transaction__isnull=False)
                ),
                name="bsl_matched_has_transaction",
            ),
        ]
        ordering = ("line_date", "id")

    def __str__(self):
        return f"{self.line_date} {self.description[:40]} D:{self.debit_amount} C:{self.credit_amount}"

    @property
    def amount(self):
        """The non-zero side."""
        return self.credit_amount if self.credit_amount > 0 else self.debit_amount

    @property
    def expected_transaction_type(self):
        # Money in matches receipts, money out matches payments
        return "receipt" if self.credit_amount > 0 else "payment"

    @property
    def is_resolved(self):
        return self.matched or self.non_ledger_reason is not None


class Reconciliation(models.Model):
    """Reconciliation of one bank statement; `reconciled` is terminal."""

    bank_statement = models.OneToOneField(
        BankStatement, on_delete=models.CASCADE, related_name="reconciliation"
    )
    status = models.CharField(
        max_length=20, choices=RECONCILIATION_STATUS, default="in_progress"
    )
    reconciled_at = models.DateTimeField(null=True, blank=True)
    reconciled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Figures captured at finalization
    bank_balance = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    ledger_balance = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    outstanding_deposits = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    outstanding_withdrawals = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        ordering = ("-reconciled_at",)

    def __str__(self):
        return f"Reconciliation {self.bank_statement_id} [{self.status}]"

    @property
    def adjusted_bank_balance(self):
        if self.bank_balance is None:
            return None
        return self.bank_balance + self.outstanding_deposits - self.outstanding_withdrawals
