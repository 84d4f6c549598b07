import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..conf import match_amount_tolerance, match_window_days
from ..exceptions import NotFoundError, StatementFinalized, UnresolvedLinesError
from ..models import BankStatement, BankStatementLine, Reconciliation, TrustTransaction
from ..models.banking import NON_LEDGER_REASONS
from .audit import log_action
from .ledger import record_transaction
from .reports import ledger_balance
from .validation import require_choice

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class MatchProposal:
    line_id: int
    transaction_id: int
    day_distance: int


@dataclass(frozen=True)
class MatchProposals:
    proposals: tuple
    # Lines with several equally close candidates; an operator must choose
    ambiguous_line_ids: tuple
    # Lines with no candidate at all
    unmatched_line_ids: tuple


@dataclass(frozen=True)
class AutoMatchResult:
    matched: int
    ambiguous_line_ids: tuple
    unmatched_line_ids: tuple


# ----------------------------
# Lookups
# ----------------------------
def _get_statement(statement_id, lock=False) -> BankStatement:
    qs = BankStatement.objects.select_for_update() if lock else BankStatement.objects
    try:
        return qs.get(pk=statement_id)
    except (BankStatement.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("BankStatement", statement_id)


def _get_line(line_id) -> BankStatementLine:
    try:
        return BankStatementLine.objects.select_for_update().get(pk=line_id)
    except (BankStatementLine.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("BankStatementLine", line_id)


def _open_statement_for(line) -> BankStatement:
    """Lock the line's statement; reconciled statements refuse any change."""
    statement = _get_statement(line.statement_id, lock=True)
    if statement.is_reconciled:
        raise StatementFinalized()
    return statement


def _ensure_in_progress(statement):
    Reconciliation.objects.get_or_create(
        bank_statement=statement, defaults={"status": "in_progress"}
    )
    if statement.status == "lines_imported":
        statement.transition_to("in_progress")


# ----------------------------
# Matching proposals (read-only)
# ----------------------------
def propose_matches(statement) -> MatchProposals:
    """
    Pair each open bank line with a ledger transaction of the same fund:
      - amount equal to the line's non-zero side, within tolerance
      - dated within the match window of the line
      - payment for money out, receipt for money in
      - not already proposed for an earlier line of this pass
    Several candidates: the strictly closest date wins, otherwise the line
    is left for manual selection. Nothing is written.
    """
    lines = list(
        statement.lines.filter(matched=False, non_ledger_reason__isnull=True)
        .order_by("line_date", "id")
    )
    if not lines:
        return MatchProposals(proposals=(), ambiguous_line_ids=(), unmatched_line_ids=())

    window = match_window_days()
    tolerance = match_amount_tolerance()
    earliest = min(l.line_date for l in lines) - datetime.timedelta(days=window)
    latest = max(l.line_date for l in lines) + datetime.timedelta(days=window)

    pool = list(
        TrustTransaction.objects.filter(scheme_id=statement.scheme_id)
        .unreconciled()
        .filter(
            fund_type=statement.fund_type,
            transaction_type__in=("receipt", "payment"),
            bank_line__isnull=True,
            transaction_date__gte=earliest,
            transaction_date__lte=latest,
        )
        .order_by("transaction_date", "id")
    )

    claimed = set()
    proposals, ambiguous, unmatched = [], [], []
    for line in lines:
        wanted_type = line.expected_transaction_type
        amount = line.amount
        candidates = sorted(
            (
                (abs((txn.transaction_date - line.line_date).days), txn.pk)
                for txn in pool
                if txn.pk not in claimed
                and txn.transaction_type == wanted_type
                and abs(txn.amount - amount) <= tolerance
                and abs((txn.transaction_date - line.line_date).days) <= window
            )
        )
        if not candidates:
            unmatched.append(line.pk)
            continue
        # A tie at the closest distance is never guessed
        if len(candidates) > 1 and candidates[0][0] == candidates[1][0]:
            ambiguous.append(line.pk)
            continue

        distance, txn_id = candidates[0]
        claimed.add(txn_id)
        proposals.append(
            MatchProposal(line_id=line.pk, transaction_id=txn_id, day_distance=distance)
        )

    return MatchProposals(
        proposals=tuple(proposals),
        ambiguous_line_ids=tuple(ambiguous),
        unmatched_line_ids=tuple(unmatched),
    )


def auto_match(statement, user=None) -> AutoMatchResult:
    """Commit every current proposal for `statement` as one unit."""
    with transaction.atomic():
        statement = _get_statement(statement.pk, lock=True)
        if statement.is_reconciled:
            raise StatementFinalized()
        result = propose_matches(statement)
        for proposal in result.proposals:
            match_line(proposal.line_id, proposal.transaction_id, user=user)

    logger.info(
        "Auto-match completed",
        extra={
            "statement_id": statement.pk,
            "matched": len(result.proposals),
            "ambiguous": len(result.ambiguous_line_ids),
            "unmatched": len(result.unmatched_line_ids),
        },
    )
    return AutoMatchResult(
        matched=len(result.proposals),
        ambiguous_line_ids=result.ambiguous_line_ids,
        unmatched_line_ids=result.unmatched_line_ids,
    )


# ----------------------------
# Manual changes
# ----------------------------
def match_line(line_id, transaction_id, user=None) -> BankStatementLine:
    with transaction.atomic():
        line = _get_line(line_id)
        statement = _open_statement_for(line)
        try:
            txn = TrustTransaction.objects.select_for_update().get(pk=transaction_id)
        except (TrustTransaction.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Transaction", transaction_id)

        if txn.scheme_id != statement.scheme_id:
            raise ValidationError("Bank line and transaction belong to different schemes")
        if txn.is_voided:
            raise ValidationError("Cannot match a voided transaction")
        if txn.fund_type != statement.fund_type:
            raise ValidationError(
                f"Transaction belongs to the {txn.fund_type} fund, "
                f"statement is for the {statement.fund_type} fund"
            )
        if (
            BankStatementLine.objects.filter(matched_transaction=txn)
            .exclude(pk=line.pk)
            .exists()
        ):
            raise ValidationError("Transaction is already matched to another bank line")

        # Re-pointing a line releases the transaction it held before
        previous_id = line.matched_transaction_id
        if previous_id and previous_id != txn.pk:
            TrustTransaction.objects.filter(pk=previous_id).update(is_reconciled=False)

        line.matched = True
        line.matched_transaction = txn
        line.non_ledger_reason = None
        line.save(update_fields=["matched", "matched_transaction", "non_ledger_reason"])

        txn.is_reconciled = True
        txn.save(update_fields=["is_reconciled"])

        _ensure_in_progress(statement)
        log_action(
            action="match",
            instance=line,
            user=user,
            scheme=statement.scheme,
            changes={"transaction_id": txn.pk, "previous_transaction_id": previous_id},
        )
    return line


def unmatch_line(line_id, user=None) -> BankStatementLine:
    with transaction.atomic():
        line = _get_line(line_id)
        statement = _open_statement_for(line)
        if not line.matched:
            return line

        txn_id = line.matched_transaction_id
        line.matched = False
        line.matched_transaction = None
        line.save(update_fields=["matched", "matched_transaction"])
        TrustTransaction.objects.filter(pk=txn_id).update(is_reconciled=False)

        log_action(
            action="unmatch",
            instance=line,
            user=user,
            scheme=statement.scheme,
            changes={"transaction_id": txn_id},
        )
    return line


def mark_non_ledger(line_id, reason, user=None) -> BankStatementLine:
    """
    Flag a line (bank fee, interest, ...) that has no ledger transaction.
    A reason of None clears the flag.
    """
    with transaction.atomic():
        line = _get_line(line_id)
        statement = _open_statement_for(line)
        if reason is not None:
            require_choice(reason, NON_LEDGER_REASONS, "reason")
            if line.matched:
                raise ValidationError(
                    "Unmatch the line before marking it as a non-ledger item"
                )

        line.non_ledger_reason = reason
        line.save(update_fields=["non_ledger_reason"])
        _ensure_in_progress(statement)
        log_action(
            action="mark_non_ledger",
            instance=line,
            user=user,
            scheme=statement.scheme,
            changes={"reason": reason},
        )
    return line


def create_transaction_from_bank_line(line_id, data=None, user=None) -> TrustTransaction:
    """
    Record a ledger transaction for a bank line that has none, then match it.
    Date, amount, type, fund and description default to the line's own.
    """
    with transaction.atomic():
        line = _get_line(line_id)
        statement = _open_statement_for(line)
        values = {
            "transaction_date": line.line_date,
            "transaction_type": line.expected_transaction_type,
            "fund_type": statement.fund_type,
            "amount": line.amount,
            "description": line.description,
        }
        values.update(data or {})
        txn = record_transaction(statement.scheme, values, user=user)
        match_line(line.pk, txn.pk, user=user)
    return txn


# ----------------------------
# Finalization
# ----------------------------
def reconcile(statement_id, user=None) -> Reconciliation:
    """
    Finalize a statement once every line is matched or non-ledger.
    The statement and the matched transactions are frozen afterwards.
    """
    with transaction.atomic():
        statement = _get_statement(statement_id, lock=True)
        if statement.is_reconciled:
            raise StatementFinalized()

        unresolved = statement.lines.filter(
            matched=False, non_ledger_reason__isnull=True
        ).count()
        if unresolved:
            raise UnresolvedLinesError(unresolved)

        matched_count = TrustTransaction.objects.filter(
            bank_line__statement=statement
        ).update(is_reconciled=True)

        ledger = ledger_balance(
            statement.scheme, statement.fund_type, as_of=statement.statement_date
        )
        # Ledger items the bank has not shown yet
        outstanding = (
            TrustTransaction.objects.filter(scheme_id=statement.scheme_id)
            .unreconciled()
            .filter(
                fund_type=statement.fund_type,
                transaction_date__lte=statement.statement_date,
            )
            .aggregate(
                deposits=models.Sum("amount", filter=models.Q(transaction_type="receipt")),
                withdrawals=models.Sum("amount", filter=models.Q(transaction_type="payment")),
            )
        )

        reconciliation, _ = Reconciliation.objects.get_or_create(
            bank_statement=statement, defaults={"status": "in_progress"}
        )
        reconciliation.status = "reconciled"
        reconciliation.reconciled_at = timezone.now()
        reconciliation.reconciled_by = user if getattr(user, "pk", None) else None
        reconciliation.bank_balance = statement.closing_balance
        reconciliation.ledger_balance = ledger
        reconciliation.outstanding_deposits = outstanding["deposits"] or ZERO
        reconciliation.outstanding_withdrawals = outstanding["withdrawals"] or ZERO
        reconciliation.save()

        statement.transition_to("reconciled")
        log_action(
            action="reconcile",
            instance=statement,
            user=user,
            changes={
                "bank_balance": reconciliation.bank_balance,
                "ledger_balance": ledger,
                "transactions_reconciled": matched_count,
            },
        )

    logger.info(
        "Bank statement reconciled",
        extra={
            "statement_id": statement.pk,
            "bank_balance": str(reconciliation.bank_balance),
            "ledger_balance": str(ledger),
        },
    )
    return reconciliation


def reconciliation_history(scheme):
    return list(
        Reconciliation.objects.filter(
            bank_statement__scheme=scheme, status="reconciled"
        )
        .select_related("bank_statement")
        .order_by("-reconciled_at")
    )
