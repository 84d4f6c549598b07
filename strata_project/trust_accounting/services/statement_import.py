"""
Bank statement ingestion.

Bank exports arrive as CSV text in whatever layout the bank prefers.
The parser finds the columns it needs by header name, turns every usable
row into a statement line, and counts the rows it had to drop.
"""

import csv
import datetime
import io
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from ..models import BankStatement, BankStatementLine
from ..models.account import FUND_TYPES
from .audit import log_action
from .validation import require_choice, to_date

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")

# Header keywords per column role, most specific first
HEADER_KEYWORDS = {
    "date": ["transaction date", "date", "posted"],
    "description": ["description", "narrative", "details", "particulars", "memo", "transaction"],
    "debit": ["debit", "withdrawal", "money out", "paid out"],
    "credit": ["credit", "deposit", "money in", "paid in"],
    "balance": ["balance"],
    "amount": ["amount"],
}

DATE_FORMATS = (
    "%d/%m/%Y",  # also takes D/M/YYYY
    "%d-%m-%Y",
    "%d/%m/%y",
    "%Y-%m-%d",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
)

_PARENS = re.compile(r"^\((.*)\)$")


@dataclass(frozen=True)
class ParsedLine:
    line_date: datetime.date
    description: str
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Optional[Decimal]


@dataclass(frozen=True)
class ParsedStatement:
    lines: tuple
    skipped: int
    opening_balance: Optional[Decimal]
    closing_balance: Optional[Decimal]


@dataclass(frozen=True)
class IngestResult:
    statement: BankStatement
    imported: int
    skipped: int
    opening_balance: Decimal
    closing_balance: Decimal


# ----------------------------
# Field parsers
# ----------------------------
def parse_statement_date(text) -> Optional[datetime.date]:
    text = (text or "").strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_amount(text) -> Optional[Decimal]:
    """
    Signed amount from a bank cell: "$1,234.56", "(12.00)", "45.10 DR".
    Returns None for blank or unreadable cells.
    """
    text = (text or "").strip().upper()
    if not text:
        return None

    sign = 1
    if text.endswith("CR"):
        text = text[:-2]
    elif text.endswith("DR"):
        sign = -1
        text = text[:-2]

    text = text.replace("$", "").replace(",", "").replace(" ", "")
    match = _PARENS.match(text)
    if match:
        sign = -sign
        text = match.group(1)

    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return (value * sign).quantize(CENT)


def _matches(header, role):
    return any(keyword in header for keyword in HEADER_KEYWORDS[role])


def _find_columns(header: List[str]) -> dict:
    normalised = [h.strip().lstrip("\ufeff").lower() for h in header]
    # A "Debit/Credit" indicator column carries no amounts of its own
    taken = {
        i for i, h in enumerate(normalised)
        if _matches(h, "debit") and _matches(h, "credit")
    }
    columns = {"indicator": min(taken)} if taken else {}
    for role, keywords in HEADER_KEYWORDS.items():
        for keyword in keywords:
            idx = next(
                (i for i, h in enumerate(normalised) if keyword in h and i not in taken),
                None,
            )
            if idx is not None:
                columns[role] = idx
                taken.add(idx)
                break
    return columns


def _cell(row, idx):
    if idx is None or idx >= len(row):
        return ""
    return row[idx]


def _split_amount(row, columns):
    """(debit, credit) for a row; bank debit = money out."""
    if "debit" in columns or "credit" in columns:
        debit = abs(parse_amount(_cell(row, columns.get("debit"))) or ZERO)
        credit = abs(parse_amount(_cell(row, columns.get("credit"))) or ZERO)
        # Some banks fill both cells; keep the net movement only
        if debit and credit:
            net = credit - debit
            debit, credit = (ZERO, net) if net > 0 else (-net, ZERO)
        return debit, credit

    signed = parse_amount(_cell(row, columns.get("amount"))) or ZERO
    indicator = _cell(row, columns.get("indicator")).strip().upper()
    if indicator.startswith("D"):
        return abs(signed), ZERO
    if indicator.startswith("C"):
        return ZERO, abs(signed)
    if signed < 0:
        return -signed, ZERO
    return ZERO, signed


# ----------------------------
# Statement parser
# ----------------------------
def parse_bank_statement(raw_text) -> ParsedStatement:
    """
    Parse CSV bank statement text.
    Rows with an unreadable date or no amount are skipped and counted,
    delimiter-only rows included; empty lines are ignored.
    """
    if isinstance(raw_text, bytes):
        raw_text = raw_text.decode("utf-8-sig")  # Handle BOM
    rows = [row for row in csv.reader(io.StringIO((raw_text or "").strip())) if row]
    if len(rows) < 2:
        raise ValidationError(
            "Statement must contain a header row and at least one data row"
        )

    columns = _find_columns(rows[0])
    if "date" not in columns:
        raise ValidationError("Statement must have a Date column")
    if "description" not in columns:
        raise ValidationError("Statement must have a Description column")
    if not {"debit", "credit", "amount"} & set(columns):
        raise ValidationError("Statement must have Debit and/or Credit columns")

    lines = []
    skipped = 0
    for row_number, row in enumerate(rows[1:], start=2):
        line_date = parse_statement_date(_cell(row, columns["date"]))
        debit, credit = _split_amount(row, columns)
        if line_date is None or (debit == 0 and credit == 0):
            skipped += 1
            logger.warning(
                "Skipped bank statement row",
                extra={
                    "row_number": row_number,
                    "reason": "bad date" if line_date is None else "no amount",
                },
            )
            continue

        balance_cell = _cell(row, columns.get("balance"))
        lines.append(
            ParsedLine(
                line_date=line_date,
                description=_cell(row, columns["description"]).strip()[:500],
                debit_amount=debit,
                credit_amount=credit,
                running_balance=parse_amount(balance_cell) if "balance" in columns else None,
            )
        )

    opening = closing = None
    if lines and lines[0].running_balance is not None:
        first = lines[0]
        # Balance before the first movement
        opening = first.running_balance - first.credit_amount + first.debit_amount
    if lines:
        closing = lines[-1].running_balance

    return ParsedStatement(
        lines=tuple(lines),
        skipped=skipped,
        opening_balance=opening,
        closing_balance=closing,
    )


def ingest_statement(scheme, fund_type, statement_date, raw_text, user=None) -> IngestResult:
    """Parse `raw_text` and store it as a new statement of `fund_type`."""
    fund_type = require_choice(fund_type, FUND_TYPES, "fund_type")
    statement_date = to_date(statement_date, "statement_date")
    parsed = parse_bank_statement(raw_text)
    if not parsed.lines:
        raise ValidationError("No valid lines found in statement")

    opening = parsed.opening_balance if parsed.opening_balance is not None else ZERO
    closing = parsed.closing_balance if parsed.closing_balance is not None else ZERO

    with transaction.atomic():
        statement = BankStatement.objects.create(
            scheme=scheme,
            fund_type=fund_type,
            statement_date=statement_date,
            opening_balance=opening,
            closing_balance=closing,
            skipped_rows=parsed.skipped,
            uploaded_by=user if getattr(user, "pk", None) else None,
        )
        BankStatementLine.objects.bulk_create(
            [
                BankStatementLine(
                    statement=statement,
                    line_date=line.line_date,
                    description=line.description,
                    debit_amount=line.debit_amount,
                    credit_amount=line.credit_amount,
                    running_balance=line.running_balance,
                )
                for line in parsed.lines
            ]
        )
        statement.transition_to("lines_imported")
        log_action(
            action="import",
            instance=statement,
            user=user,
            changes={"imported": len(parsed.lines), "skipped": parsed.skipped},
        )

    logger.info(
        "Bank statement imported",
        extra={
            "scheme_id": scheme.pk,
            "statement_id": statement.pk,
            "imported": len(parsed.lines),
            "skipped": parsed.skipped,
        },
    )
    return IngestResult(
        statement=statement,
        imported=len(parsed.lines),
        skipped=parsed.skipped,
        opening_balance=opening,
        closing_balance=closing,
    )
