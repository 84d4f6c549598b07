from django.core.exceptions import ValidationError
from django.core.validators import MinLengthValidator, RegexValidator
from django.db import models
from ..managers import AccountManager
from .scheme import Scheme

# Choice Lists
ACCOUNT_TYPES = [
    # Used in Account model to classify general ledger accounts
    ("asset", "Asset"),
    ("liability", "Liability"),
    ("equity", "Equity"),
    ("income", "Income"),
    ("expense", "Expense"),
]

# Trust money is held in two segregated funds that must never be mixed
FUND_TYPES = [
    ("admin", "Administrative fund"),
    ("capital_works", "Capital works fund"),
]

account_code_validator = RegexValidator(
    r"^\d{4}$", "Account code must be a 4-digit number"
)


class Account(models.Model):
    """
    Ledger account in the chart of accounts.
    - scheme=None: organisation-wide default, shared by every scheme
    - scheme set: scheme-specific account, overrides a default with the same code
    - is_system: seeded default, never edited or deleted
    """

    scheme = models.ForeignKey(
        Scheme,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    # Every account has a code
    # which lets you sort/group accounts consistently in reports.
    code = models.CharField(max_length=10, validators=[account_code_validator])
    name = models.CharField(
        max_length=255,
        validators=[
            MinLengthValidator(2, "Account name must be at least 2 characters")
        ],
    )  # Human-readable name → "Admin Fund Trust Account", "Levy Income".

    account_type = models.CharField(max_length=10, choices=ACCOUNT_TYPES)
    # Null when the account serves both funds (e.g. GST collected)
    fund_type = models.CharField(
        max_length=20, choices=FUND_TYPES, null=True, blank=True
    )

    # Optional hierarchy, weak link: removing a parent leaves children in place
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="children",
    )

    is_system = models.BooleanField(default=False)
    # “soft delete” accounts (hide in UI, stop new postings)
    # without deleting history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AccountManager()

    class Meta:
        indexes = [
            models.Index(fields=["scheme", "account_type"], name="acct_scheme_type_idx"),
            models.Index(fields=["scheme", "code"], name="acct_scheme_code_idx"),
        ]
        # A code is unique inside its own scope only:
        # per scheme, and separately among organisation defaults
        constraints = [
            models.UniqueConstraint(
                fields=["scheme", "code"],
                condition=models.Q(scheme__isnull=False),
                name="uq_scheme_account_code",
            ),
            models.UniqueConstraint(
                fields=["code"],
                condition=models.Q(scheme__isnull=True),
                name="uq_default_account_code",
            ),
        ]
        ordering = ("code",)

    def __str__(self):
        return f"{self.code} – {self.name}"  # Example: "4000 – Levy Income"

    @property
    def is_default(self):
        return self.scheme_id is None

    def clean(self):
        # Parent must be visible to the same scheme:
        # either an organisation default or one of its own accounts
        if self.parent_id:
            if self.parent_id == self.pk:
                raise ValidationError("An account cannot be its own parent.")
            if self.parent.scheme_id not in (None, self.scheme_id):
                raise ValidationError(
                    "Parent account must belong to the same scheme."
                )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
