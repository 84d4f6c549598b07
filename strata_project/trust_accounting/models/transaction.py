from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TransactionLineManager, TransactionManager
from .account import FUND_TYPES, Account
from .scheme import Scheme

TRANSACTION_TYPES = [
    ("receipt", "Receipt"),  # money into the trust account
    ("payment", "Payment"),  # money out of the trust account
    ("journal", "Journal"),  # explicit debit/credit lines, no cash movement implied
]

PAYMENT_METHODS = [
    ("eft", "EFT"),
    ("credit_card", "Credit card"),
    ("cheque", "Cheque"),
    ("cash", "Cash"),
    ("bpay", "BPAY"),
]

LINE_SIDES = [
    ("debit", "Debit"),
    ("credit", "Credit"),
]


# ---------- Transaction (header) & TransactionLine ----------
class TrustTransaction(models.Model):
    """
    One trust-account transaction of a scheme.
    Its debit/credit lines are derived when it is recorded and are never
    edited afterwards; a mistake is corrected by voiding and re-recording.
    """

    scheme = models.ForeignKey(
        Scheme, on_delete=models.PROTECT, related_name="transactions"
    )
    transaction_date = models.DateField()
    transaction_type = models.CharField(max_length=10, choices=TRANSACTION_TYPES)
    fund_type = models.CharField(max_length=20, choices=FUND_TYPES)

    # Income account for receipts, expense account for payments.
    # Journals carry their accounts on the lines instead.
    category = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="categorised_transactions",
    )

    amount = models.DecimalField(max_digits=14, decimal_places=2)
    gst_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    description = models.TextField()
    reference = models.CharField(max_length=200, null=True, blank=True)
    payment_method = models.CharField(
        max_length=20, choices=PAYMENT_METHODS, null=True, blank=True
    )
    # Lot the money relates to, e.g. "Lot 4" for a levy receipt
    lot_reference = models.CharField(max_length=50, null=True, blank=True)

    # Flipped by bank reconciliation when a statement line claims this row
    is_reconciled = models.BooleanField(default=False)

    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    # Soft delete (void): row and lines stay for audit history
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = TransactionManager()

    class Meta:
        indexes = [
            models.Index(fields=["scheme", "transaction_date"], name="txn_scheme_date_idx"),
            models.Index(
                fields=["scheme", "fund_type", "is_reconciled"],
                name="txn_scheme_fund_rec_idx",
            ),
            models.Index(fields=["scheme", "category"], name="txn_scheme_category_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="txn_amount_positive",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(gst_amount__gte=0)
                    & models.Q(gst_amount__lte=models.F("amount"))
                ),
                name="txn_gst_within_amount",
            ),
        ]
        ordering = ("-transaction_date", "-created_at")

    def __str__(self):
        return (
            f"{self.transaction_type} {self.transaction_date} "
            f"{self.amount} [{self.fund_type}]"
        )

    @property
    def is_voided(self):
        return self.deleted_at is not None

    # Aggregate all debit and credit amounts across the transaction's lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("amount", filter=models.Q(side="debit")),
            total_credit=models.Sum("amount", filter=models.Q(side="credit")),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    def clean(self):
        if self.category_id and self.category.scheme_id not in (None, self.scheme_id):
            raise ValidationError("Category must belong to the same scheme.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class TransactionLine(models.Model):
    """One side of a transaction's double entry against a ledger account."""

    transaction = models.ForeignKey(
        TrustTransaction,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    # Can’t delete an account while lines point at it → PROTECT
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="lines"
    )
    side = models.CharField(max_length=6, choices=LINE_SIDES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    description = models.CharField(max_length=400, null=True, blank=True)

    objects = TransactionLineManager()

    class Meta:
        indexes = [
            models.Index(fields=["account", "side"], name="line_account_side_idx"),
            models.Index(fields=["transaction"], name="line_transaction_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="line_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.transaction_id} | {self.account.code} | {self.side} {self.amount}"
