from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from trust_accounting.exceptions import (ImmutableRecordError, NotFoundError,
                                         StatementFinalized,
                                         UnresolvedLinesError)
from trust_accounting.models import (BankStatement, BankStatementLine,
                                     Reconciliation)
from trust_accounting.services.ledger import void_transaction
from trust_accounting.services.reconciliation import (
    auto_match, create_transaction_from_bank_line, mark_non_ledger, match_line,
    propose_matches, reconcile, reconciliation_history, unmatch_line)
from trust_accounting.tasks import auto_match_statement

from .helpers import d, default_account, make_scheme, payment, receipt


def make_statement(scheme, lines, fund_type="admin", statement_date="2025-08-31",
                   closing_balance="0.00"):
    """`lines` are (date, debit, credit) tuples of strings."""
    statement = BankStatement.objects.create(
        scheme=scheme,
        fund_type=fund_type,
        statement_date=d(statement_date),
        closing_balance=Decimal(closing_balance),
        status="lines_imported",
    )
    for day, debit, credit in lines:
        BankStatementLine.objects.create(
            statement=statement,
            line_date=d(day),
            description="Bank line",
            debit_amount=Decimal(debit),
            credit_amount=Decimal(credit),
        )
    return statement


""" Matching proposals """
class ProposeMatchesTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()
        self.first = payment(self.scheme, "250.00", d("2025-08-01"), category="6200")
        self.later = payment(self.scheme, "250.00", d("2025-08-04"), category="6200")
        self.statement = make_statement(self.scheme, [("2025-08-02", "250.00", "0.00")])
        self.line = self.statement.lines.get()

    def test_closest_date_wins(self):
        result = propose_matches(self.statement)

        self.assertEqual(len(result.proposals), 1)
        self.assertEqual(result.proposals[0].transaction_id, self.first.pk)
        self.assertEqual(result.proposals[0].day_distance, 1)
        # proposing writes nothing
        self.line.refresh_from_db()
        self.assertFalse(self.line.matched)

    """ Equally close candidates are never guessed between """
    def test_tie_is_left_for_manual_selection(self):
        payment(self.scheme, "250.00", d("2025-08-03"), category="6200")

        result = propose_matches(self.statement)
        self.assertEqual(result.proposals, ())
        self.assertEqual(result.ambiguous_line_ids, (self.line.pk,))

        auto_match(self.statement)
        self.line.refresh_from_db()
        self.assertFalse(self.line.matched)

    def test_receipt_never_matches_money_out(self):
        void_transaction(self.first.pk)
        void_transaction(self.later.pk)
        receipt(self.scheme, "250.00", d("2025-08-02"))
        result = propose_matches(self.statement)
        self.assertEqual(result.unmatched_line_ids, (self.line.pk,))

    def test_window_and_tolerance(self):
        other = make_statement(
            self.scheme,
            [
                ("2025-08-09", "250.00", "0.00"),  # 5 days from the nearest payment
                ("2025-08-02", "250.01", "0.00"),  # within a cent
                ("2025-08-02", "250.02", "0.00"),
            ],
        )
        lines = list(other.lines.order_by("id"))
        result = propose_matches(other)

        self.assertEqual([p.line_id for p in result.proposals], [lines[1].pk])
        self.assertCountEqual(result.unmatched_line_ids, [lines[0].pk, lines[2].pk])

    def test_transaction_claimed_once_per_pass(self):
        void_transaction(self.later.pk)
        statement = make_statement(
            self.scheme,
            [("2025-08-01", "250.00", "0.00"), ("2025-08-02", "250.00", "0.00")],
        )
        first_line, second_line = statement.lines.order_by("line_date")
        result = propose_matches(statement)

        self.assertEqual(
            [(p.line_id, p.transaction_id) for p in result.proposals],
            [(first_line.pk, self.first.pk)],
        )
        self.assertEqual(result.unmatched_line_ids, (second_line.pk,))

    def test_other_fund_and_voided_are_not_candidates(self):
        void_transaction(self.first.pk)
        void_transaction(self.later.pk)
        payment(self.scheme, "250.00", d("2025-08-02"), category="6900", fund_type="capital_works")

        result = propose_matches(self.statement)
        self.assertEqual(result.unmatched_line_ids, (self.line.pk,))


class AutoMatchTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()
        self.levy = receipt(self.scheme, "1000.00", d("2025-08-01"), category="4100")
        self.cleaner = payment(self.scheme, "120.00", d("2025-08-01"), category="6200")
        self.statement = make_statement(
            self.scheme,
            [
                ("2025-08-01", "0.00", "1000.00"),
                ("2025-08-02", "120.00", "0.00"),
                ("2025-08-05", "2.50", "0.00"),
            ],
        )

    def test_auto_match_commits_proposals(self):
        result = auto_match(self.statement)

        self.assertEqual(result.matched, 2)
        self.assertEqual(len(result.unmatched_line_ids), 1)
        self.levy.refresh_from_db()
        self.assertTrue(self.levy.is_reconciled)
        self.assertEqual(self.levy.bank_line.statement, self.statement)

        self.statement.refresh_from_db()
        self.assertEqual(self.statement.status, "in_progress")
        self.assertEqual(self.statement.reconciliation.status, "in_progress")

    def test_second_run_matches_nothing_new(self):
        auto_match(self.statement)
        self.assertEqual(auto_match(self.statement).matched, 0)
        self.assertEqual(self.statement.lines.filter(matched=True).count(), 2)

    def test_background_task(self):
        self.assertEqual(settings.CELERY_BROKER_URL, "memory://")
        result = auto_match_statement.delay(self.statement.pk).get()
        self.assertEqual(result["matched"], 2)
        self.assertEqual(len(result["unmatched"]), 1)


""" Manual matching """
class ManualMatchTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()
        self.t1 = payment(self.scheme, "80.00", d("2025-08-01"), category="6200")
        self.t2 = payment(self.scheme, "80.00", d("2025-08-02"), category="6200")
        self.statement = make_statement(
            self.scheme,
            [("2025-08-02", "80.00", "0.00"), ("2025-08-03", "80.00", "0.00")],
        )
        self.line_a, self.line_b = self.statement.lines.order_by("line_date")

    def test_match_and_repoint(self):
        match_line(self.line_a.pk, self.t1.pk)
        self.t1.refresh_from_db()
        self.assertTrue(self.t1.is_reconciled)

        match_line(self.line_a.pk, self.t2.pk)
        self.t1.refresh_from_db()
        self.t2.refresh_from_db()
        self.assertFalse(self.t1.is_reconciled)
        self.assertTrue(self.t2.is_reconciled)

    def test_transaction_matches_one_line_only(self):
        match_line(self.line_a.pk, self.t1.pk)
        with self.assertRaises(ValidationError):
            match_line(self.line_b.pk, self.t1.pk)

    def test_rejects_voided_and_other_fund(self):
        void_transaction(self.t1.pk)
        with self.assertRaises(ValidationError):
            match_line(self.line_a.pk, self.t1.pk)

        capital = payment(self.scheme, "80.00", d("2025-08-02"), category="6900", fund_type="capital_works")
        with self.assertRaises(ValidationError):
            match_line(self.line_a.pk, capital.pk)

    def test_malformed_ids_are_not_found(self):
        with self.assertRaises(NotFoundError):
            match_line("xyz", self.t1.pk)
        with self.assertRaises(NotFoundError):
            match_line(self.line_a.pk, "xyz")
        with self.assertRaises(NotFoundError):
            unmatch_line(None)

    def test_unmatch_releases_transaction(self):
        match_line(self.line_a.pk, self.t1.pk)
        line = unmatch_line(self.line_a.pk)

        self.assertFalse(line.matched)
        self.assertIsNone(line.matched_transaction)
        self.t1.refresh_from_db()
        self.assertFalse(self.t1.is_reconciled)

    def test_matched_transaction_cannot_be_voided(self):
        match_line(self.line_a.pk, self.t1.pk)
        with self.assertRaises(ImmutableRecordError):
            void_transaction(self.t1.pk)

    def test_mark_non_ledger(self):
        with self.assertRaises(ValidationError):
            mark_non_ledger(self.line_a.pk, "donation")

        line = mark_non_ledger(self.line_a.pk, "bank_fee")
        self.assertTrue(line.is_resolved)
        line = mark_non_ledger(self.line_a.pk, None)
        self.assertFalse(line.is_resolved)

        match_line(self.line_b.pk, self.t2.pk)
        with self.assertRaises(ValidationError):
            mark_non_ledger(self.line_b.pk, "other")

    def test_create_transaction_from_line(self):
        statement = make_statement(self.scheme, [("2025-08-05", "0.00", "1.20")])
        line = statement.lines.get()

        txn = create_transaction_from_bank_line(
            line.pk, {"category": default_account("4300"), "description": "Interest"}
        )

        self.assertEqual(txn.transaction_type, "receipt")
        self.assertEqual(txn.amount, Decimal("1.20"))
        self.assertEqual(txn.transaction_date, d("2025-08-05"))
        line.refresh_from_db()
        self.assertEqual(line.matched_transaction, txn)


""" Finalization """
class ReconcileTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()
        self.levy = receipt(self.scheme, "1000.00", d("2025-08-01"), category="4100")
        self.cleaner = payment(self.scheme, "120.00", d("2025-08-01"), category="6200")
        # not yet through the bank
        self.gardener = payment(self.scheme, "50.00", d("2025-08-20"), category="6300")
        # after the statement date
        payment(self.scheme, "75.00", d("2025-09-05"), category="6300")
        self.statement = make_statement(
            self.scheme,
            [
                ("2025-08-01", "0.00", "1000.00"),
                ("2025-08-02", "120.00", "0.00"),
                ("2025-08-05", "2.50", "0.00"),
            ],
            closing_balance="877.50",
        )
        auto_match(self.statement)
        self.fee = self.statement.lines.get(debit_amount=Decimal("2.50"))

    def test_unresolved_line_blocks_finalization(self):
        with self.assertRaises(UnresolvedLinesError) as ctx:
            reconcile(self.statement.pk)
        self.assertEqual(ctx.exception.count, 1)
        self.statement.refresh_from_db()
        self.assertEqual(self.statement.status, "in_progress")

    def test_reconcile_captures_balances(self):
        mark_non_ledger(self.fee.pk, "bank_fee")
        reconciliation = reconcile(self.statement.pk)

        self.assertEqual(reconciliation.status, "reconciled")
        self.assertIsNotNone(reconciliation.reconciled_at)
        self.assertEqual(reconciliation.bank_balance, Decimal("877.50"))
        self.assertEqual(reconciliation.ledger_balance, Decimal("830.00"))
        self.assertEqual(reconciliation.outstanding_deposits, Decimal("0.00"))
        self.assertEqual(reconciliation.outstanding_withdrawals, Decimal("50.00"))
        self.assertEqual(reconciliation.adjusted_bank_balance, Decimal("827.50"))

        self.statement.refresh_from_db()
        self.assertEqual(self.statement.status, "reconciled")
        self.assertEqual(reconciliation_history(self.scheme), [reconciliation])

    def test_finalized_statement_is_frozen(self):
        mark_non_ledger(self.fee.pk, "bank_fee")
        reconcile(self.statement.pk)
        matched = self.statement.lines.get(credit_amount=Decimal("1000.00"))

        with self.assertRaises(StatementFinalized):
            unmatch_line(matched.pk)
        with self.assertRaises(StatementFinalized):
            match_line(matched.pk, self.gardener.pk)
        with self.assertRaises(StatementFinalized):
            mark_non_ledger(self.fee.pk, None)
        with self.assertRaises(StatementFinalized):
            reconcile(self.statement.pk)
        with self.assertRaises(ImmutableRecordError):
            void_transaction(self.levy.pk)

        # direct writes are refused too
        with self.assertRaises(StatementFinalized), transaction.atomic():
            matched.description = "edited"
            matched.save()
        with self.assertRaises(StatementFinalized), transaction.atomic():
            self.levy.refresh_from_db()
            self.levy.is_reconciled = False
            self.levy.save()

        self.assertEqual(Reconciliation.objects.filter(status="reconciled").count(), 1)
