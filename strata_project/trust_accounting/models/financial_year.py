from decimal import Decimal
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator
from django.db import models
from ..managers import SchemeManager
from .scheme import Scheme


# ---------- FinancialYear (fiscal period) ----------
class FinancialYear(models.Model):
    """
    One fiscal year of a scheme, with the opening balance of each fund.
    Years of a scheme never overlap and at most one is current.
    """

    scheme = models.ForeignKey(
        Scheme,
        on_delete=models.PROTECT,  # keep periods tied to ledger history
        related_name="financial_years",
    )

    # Human-readable label, e.g. "2025/26"
    year_label = models.CharField(
        max_length=20,
        validators=[
            RegexValidator(
                r"^\d{4}/\d{2}$", 'Year label must be in format "2025/26"'
            )
        ],
    )

    # Stored inclusive: 2025-07-01 .. 2026-06-30
    start_date = models.DateField()
    end_date = models.DateField()

    admin_opening_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    capital_opening_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    is_current = models.BooleanField(default=False)

    objects = SchemeManager()

    class Meta:
        indexes = [
            models.Index(fields=["scheme", "start_date"], name="fy_scheme_start_idx"),
        ]
        constraints = [
            # A scheme never has two current years at once
            models.UniqueConstraint(
                fields=["scheme"],
                condition=models.Q(is_current=True),
                name="uq_scheme_current_financial_year",
            ),
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="fy_end_after_start",
            ),
        ]
        ordering = ("scheme", "-start_date")

    def __str__(self):
        return f"{self.scheme.scheme_number} FY {self.year_label}"

    def opening_balance_for(self, fund_type):
        if fund_type == "admin":
            return self.admin_opening_balance
        return self.capital_opening_balance

    def contains(self, day):
        return self.start_date <= day <= self.end_date

    def clean(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError("End date must be after start date")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
