import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Organisation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="Scheme",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("scheme_number", models.CharField(max_length=50)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "organisation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="schemes",
                        to="trust_accounting.organisation",
                    ),
                ),
            ],
            options={
                "ordering": ("organisation", "name"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("organisation", "scheme_number"),
                        name="uq_organisation_scheme_number",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        max_length=10,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^\\d{4}$", "Account code must be a 4-digit number"
                            )
                        ],
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        max_length=255,
                        validators=[
                            django.core.validators.MinLengthValidator(
                                2, "Account name must be at least 2 characters"
                            )
                        ],
                    ),
                ),
                (
                    "account_type",
                    models.CharField(
                        choices=[
                            ("asset", "Asset"),
                            ("liability", "Liability"),
                            ("equity", "Equity"),
                            ("income", "Income"),
                            ("expense", "Expense"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "fund_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("admin", "Administrative fund"),
                            ("capital_works", "Capital works fund"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("is_system", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="children",
                        to="trust_accounting.account",
                    ),
                ),
                (
                    "scheme",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="accounts",
                        to="trust_accounting.scheme",
                    ),
                ),
            ],
            options={
                "ordering": ("code",),
                "indexes": [
                    models.Index(fields=["scheme", "account_type"], name="acct_scheme_type_idx"),
                    models.Index(fields=["scheme", "code"], name="acct_scheme_code_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("scheme__isnull", False)),
                        fields=("scheme", "code"),
                        name="uq_scheme_account_code",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("scheme__isnull", True)),
                        fields=("code",),
                        name="uq_default_account_code",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="FinancialYear",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "year_label",
                    models.CharField(
                        max_length=20,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^\\d{4}/\\d{2}$", 'Year label must be in format "2025/26"'
                            )
                        ],
                    ),
                ),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("admin_opening_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("capital_opening_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("is_current", models.BooleanField(default=False)),
                (
                    "scheme",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="financial_years",
                        to="trust_accounting.scheme",
                    ),
                ),
            ],
            options={
                "ordering": ("scheme", "-start_date"),
                "indexes": [
                    models.Index(fields=["scheme", "start_date"], name="fy_scheme_start_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_current", True)),
                        fields=("scheme",),
                        name="uq_scheme_current_financial_year",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("end_date__gt", models.F("start_date"))),
                        name="fy_end_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TrustTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_date", models.DateField()),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("receipt", "Receipt"),
                            ("payment", "Payment"),
                            ("journal", "Journal"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "fund_type",
                    models.CharField(
                        choices=[
                            ("admin", "Administrative fund"),
                            ("capital_works", "Capital works fund"),
                        ],
                        max_length=20,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("gst_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("description", models.TextField()),
                ("reference", models.CharField(blank=True, max_length=200, null=True)),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("eft", "EFT"),
                            ("credit_card", "Credit card"),
                            ("cheque", "Cheque"),
                            ("cash", "Cash"),
                            ("bpay", "BPAY"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("lot_reference", models.CharField(blank=True, max_length=50, null=True)),
                ("is_reconciled", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="categorised_transactions",
                        to="trust_accounting.account",
                    ),
                ),
                (
                    "recorded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "scheme",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="trust_accounting.scheme",
                    ),
                ),
            ],
            options={
                "ordering": ("-transaction_date", "-created_at"),
                "indexes": [
                    models.Index(fields=["scheme", "transaction_date"], name="txn_scheme_date_idx"),
                    models.Index(
                        fields=["scheme", "fund_type", "is_reconciled"],
                        name="txn_scheme_fund_rec_idx",
                    ),
                    models.Index(fields=["scheme", "category"], name="txn_scheme_category_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="txn_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("gst_amount__gte", 0),
                            ("gst_amount__lte", models.F("amount")),
                        ),
                        name="txn_gst_within_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransactionLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "side",
                    models.CharField(
                        choices=[("debit", "Debit"), ("credit", "Credit")],
                        max_length=6,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("description", models.CharField(blank=True, max_length=400, null=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                        to="trust_accounting.account",
                    ),
                ),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="trust_accounting.trusttransaction",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["account", "side"], name="line_account_side_idx"),
                    models.Index(fields=["transaction"], name="line_transaction_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="line_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankStatement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "fund_type",
                    models.CharField(
                        choices=[
                            ("admin", "Administrative fund"),
                            ("capital_works", "Capital works fund"),
                        ],
                        max_length=20,
                    ),
                ),
                ("statement_date", models.DateField()),
                ("opening_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("closing_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("uploaded", "Uploaded"),
                            ("lines_imported", "Lines imported"),
                            ("in_progress", "Reconciliation in progress"),
                            ("reconciled", "Reconciled"),
                        ],
                        default="uploaded",
                        max_length=20,
                    ),
                ),
                ("skipped_rows", models.PositiveIntegerField(default=0)),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                (
                    "scheme",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bank_statements",
                        to="trust_accounting.scheme",
                    ),
                ),
                (
                    "uploaded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-statement_date", "-uploaded_at"),
                "indexes": [
                    models.Index(fields=["scheme", "statement_date"], name="stmt_scheme_date_idx"),
                    models.Index(fields=["scheme", "fund_type"], name="stmt_scheme_fund_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankStatementLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_date", models.DateField()),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                ("debit_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("credit_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("running_balance", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("matched", models.BooleanField(default=False)),
                (
                    "non_ledger_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("bank_fee", "Bank fee"),
                            ("interest", "Interest"),
                            ("other", "Other"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "matched_transaction",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bank_line",
                        to="trust_accounting.trusttransaction",
                    ),
                ),
                (
                    "statement",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="trust_accounting.bankstatement",
                    ),
                ),
            ],
            options={
                "ordering": ("line_date", "id"),
                "indexes": [
                    models.Index(fields=["statement", "matched"], name="bsl_statement_matched_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("debit_amount__gte", 0), ("credit_amount__gte", 0)
                        ),
                        name="bsl_non_negative_amounts",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("credit_amount", 0), ("debit_amount__gt", 0)),
                            models.Q(("credit_amount__gt", 0), ("debit_amount", 0)),
                            _connector="OR",
                        ),
                        name="bsl_debit_xor_credit",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("matched", False), ("matched_transaction__isnull", True)),
                            models.Q(("matched", True), ("matched_transaction__isnull", False)),
                            _connector="OR",
                        ),
                        name="bsl_matched_has_transaction",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reconciliation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[("in_progress", "In progress"), ("reconciled", "Reconciled")],
                        default="in_progress",
                        max_length=20,
                    ),
                ),
                ("reconciled_at", models.DateTimeField(blank=True, null=True)),
                ("bank_balance", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("ledger_balance", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("outstanding_deposits", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("outstanding_withdrawals", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                (
                    "bank_statement",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reconciliation",
                        to="trust_accounting.bankstatement",
                    ),
                ),
                (
                    "reconciled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-reconciled_at",),
            },
        ),
        migrations.CreateModel(
            name="MaintenanceInvoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(blank=True, default="", max_length=100)),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("payee_name", models.CharField(max_length=255)),
                ("invoice_amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("gst_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "payment_reference",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="paid_invoices",
                        to="trust_accounting.trusttransaction",
                    ),
                ),
                (
                    "scheme",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="maintenance_invoices",
                        to="trust_accounting.scheme",
                    ),
                ),
            ],
            options={
                "ordering": ("-id",),
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                (
                    "changes",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "scheme",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_entries",
                        to="trust_accounting.scheme",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["scheme", "created_at"], name="audit_scheme_created_idx"),
                    models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
                ],
            },
        ),
    ]
