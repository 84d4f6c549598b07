import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError
from django.db.models import Q, Sum

from ..exceptions import ImbalanceError, NotFoundError
from ..models import FinancialYear, TransactionLine
from ..models.account import FUND_TYPES
from .accounts import resolve_trust_account
from .financial_years import get_current_financial_year
from .ledger import list_transactions, transaction_summary
from .validation import to_date

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Report section order
ACCOUNT_TYPE_ORDER = ("asset", "liability", "equity", "income", "expense")


# ---------- Trial balance ----------
@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: int
    code: str
    name: str
    account_type: str
    fund_type: Optional[str]
    total_debits: Decimal
    total_credits: Decimal

    @property
    def balance(self):
        return self.total_debits - self.total_credits


@dataclass(frozen=True)
class TrialBalance:
    rows: tuple
    total_debits: Decimal
    total_credits: Decimal
    as_of: Optional[object] = None

    @property
    def is_balanced(self):
        return self.total_debits == self.total_credits

    @property
    def sections(self):
        """[(account_type, rows)] in asset, liability, equity, income, expense order."""
        return [
            (account_type, [r for r in self.rows if r.account_type == account_type])
            for account_type in ACCOUNT_TYPE_ORDER
            if any(r.account_type == account_type for r in self.rows)
        ]


# ---------- Fund balances ----------
@dataclass(frozen=True)
class FundBalance:
    fund_type: str
    opening_balance: Decimal
    total_receipts: Decimal
    total_payments: Decimal

    @property
    def closing_balance(self):
        return self.opening_balance + self.total_receipts - self.total_payments


@dataclass(frozen=True)
class FundBalanceSummary:
    financial_year: FinancialYear
    funds: tuple

    def for_fund(self, fund_type):
        return next(f for f in self.funds if f.fund_type == fund_type)


# ---------- Income statement ----------
@dataclass(frozen=True)
class CategoryTotal:
    account_id: int
    code: str
    name: str
    fund_type: Optional[str]
    total: Decimal


@dataclass(frozen=True)
class FundIncomeSection:
    income: tuple = ()
    expenses: tuple = ()

    @property
    def total_income(self):
        return sum((c.total for c in self.income), ZERO)

    @property
    def total_expenses(self):
        return sum((c.total for c in self.expenses), ZERO)

    @property
    def net(self):
        return self.total_income - self.total_expenses


@dataclass(frozen=True)
class IncomeStatement:
    start: object
    end: object
    admin: FundIncomeSection = field(default_factory=FundIncomeSection)
    capital_works: FundIncomeSection = field(default_factory=FundIncomeSection)

    @property
    def is_empty(self):
        return not any(
            section.income or section.expenses
            for section in (self.admin, self.capital_works)
        )

    @property
    def total_income(self):
        return self.admin.total_income + self.capital_works.total_income

    @property
    def total_expenses(self):
        return self.admin.total_expenses + self.capital_works.total_expenses

    @property
    def net(self):
        return self.admin.net + self.capital_works.net


@dataclass(frozen=True)
class CategoryDrillDown:
    category: object
    transactions: list
    total: Decimal


def _sum_by_side():
    return {
        "total_debits": Sum("amount", filter=Q(side="debit")),
        "total_credits": Sum("amount", filter=Q(side="credit")),
    }


def _live_lines(scheme):
    return TransactionLine.objects.for_scheme(scheme).live()


# ----------------------------
# Reports
# ----------------------------
def trial_balance(scheme, as_of=None, raise_on_imbalance=False) -> TrialBalance:
    """
    Debits and credits per account over every live line dated on or before
    `as_of`. An imbalance is reported (and logged), never corrected.
    """
    lines = _live_lines(scheme)
    if as_of is not None:
        as_of = to_date(as_of, "as_of")
        lines = lines.filter(transaction__transaction_date__lte=as_of)

    grouped = (
        lines.values(
            "account_id",
            "account__code",
            "account__name",
            "account__account_type",
            "account__fund_type",
        )
        .annotate(**_sum_by_side())
        .order_by("account__code")
    )
    rows = tuple(
        TrialBalanceRow(
            account_id=g["account_id"],
            code=g["account__code"],
            name=g["account__name"],
            account_type=g["account__account_type"],
            fund_type=g["account__fund_type"],
            total_debits=g["total_debits"] or ZERO,
            total_credits=g["total_credits"] or ZERO,
        )
        for g in grouped
    )
    report = TrialBalance(
        rows=rows,
        total_debits=sum((r.total_debits for r in rows), ZERO),
        total_credits=sum((r.total_credits for r in rows), ZERO),
        as_of=as_of,
    )

    if not report.is_balanced:
        error = ImbalanceError(report.total_debits, report.total_credits)
        logger.error(
            "Trial balance does not balance",
            extra={
                "scheme_id": scheme.pk,
                "total_debits": str(report.total_debits),
                "total_credits": str(report.total_credits),
            },
        )
        if raise_on_imbalance:
            raise error
    return report


def fund_balance_summary(scheme, financial_year=None) -> FundBalanceSummary:
    """Opening + receipts - payments = closing, per fund, over one financial year."""
    year = financial_year or get_current_financial_year(scheme)
    if year is None:
        raise NotFoundError("FinancialYear", "current")

    activity = transaction_summary(scheme, start=year.start_date, end=year.end_date)
    funds = tuple(
        FundBalance(
            fund_type=fund_type,
            opening_balance=year.opening_balance_for(fund_type),
            total_receipts=activity.funds[fund_type].receipts,
            total_payments=activity.funds[fund_type].payments,
        )
        for fund_type, _ in FUND_TYPES
    )
    return FundBalanceSummary(financial_year=year, funds=funds)


def income_statement(scheme, start, end) -> IncomeStatement:
    """
    Income and expense accounts per fund over [start, end].
    An empty period gives empty sections, not zero rows.
    """
    start = to_date(start, "start")
    end = to_date(end, "end")
    if end < start:
        raise ValidationError("End date must be on or after start date")

    grouped = (
        _live_lines(scheme)
        .filter(
            transaction__transaction_date__gte=start,
            transaction__transaction_date__lte=end,
            account__account_type__in=("income", "expense"),
        )
        .values(
            "transaction__fund_type",
            "account_id",
            "account__code",
            "account__name",
            "account__account_type",
            "account__fund_type",
        )
        .annotate(**_sum_by_side())
        .order_by("account__code")
    )

    sections = {fund_type: {"income": [], "expense": []} for fund_type, _ in FUND_TYPES}
    for g in grouped:
        debits = g["total_debits"] or ZERO
        credits = g["total_credits"] or ZERO
        account_type = g["account__account_type"]
        # Income accounts grow on the credit side, expenses on the debit side
        total = credits - debits if account_type == "income" else debits - credits
        sections[g["transaction__fund_type"]][account_type].append(
            CategoryTotal(
                account_id=g["account_id"],
                code=g["account__code"],
                name=g["account__name"],
                fund_type=g["account__fund_type"],
                total=total,
            )
        )

    return IncomeStatement(
        start=start,
        end=end,
        **{
            fund_type: FundIncomeSection(
                income=tuple(parts["income"]), expenses=tuple(parts["expense"])
            )
            for fund_type, parts in sections.items()
        },
    )


def ledger_balance(scheme, fund_type, as_of=None) -> Decimal:
    """Debits less credits on the fund's trust account."""
    trust_account = resolve_trust_account(scheme, fund_type)
    lines = _live_lines(scheme).filter(account=trust_account)
    if as_of is not None:
        lines = lines.filter(transaction__transaction_date__lte=to_date(as_of, "as_of"))
    totals = lines.aggregate(**_sum_by_side())
    return (totals["total_debits"] or ZERO) - (totals["total_credits"] or ZERO)


def transactions_by_category(scheme, category, start=None, end=None) -> CategoryDrillDown:
    transactions = list(list_transactions(scheme, start=start, end=end, category=category))
    return CategoryDrillDown(
        category=category,
        transactions=transactions,
        total=sum((t.amount for t in transactions), ZERO),
    )
