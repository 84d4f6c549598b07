from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from trust_accounting.exceptions import (ImbalanceError, ImmutableRecordError,
                                         NotFoundError, user_message)
from trust_accounting.models import (Account, AuditLog, TransactionLine,
                                     TrustTransaction)
from trust_accounting.services.accounts import create_account, soft_delete_account
from trust_accounting.services.ledger import (derive_lines, list_transactions,
                                              record_transaction,
                                              transaction_summary,
                                              void_transaction)
from trust_accounting.services.reports import trial_balance

from .helpers import d, default_account, make_scheme, payment, receipt


""" Success tests """
class RecordTransactionTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()

    """ Receipt debits the fund trust account and credits the category """
    def test_receipt_lines_and_void(self):
        txn = receipt(
            self.scheme, "100.00", d("2025-08-01"), category="4000", gst_amount="9.09"
        )

        lines = {(l.account.code, l.side): l.amount for l in txn.lines.all()}
        self.assertEqual(
            lines,
            {("1100", "debit"): Decimal("100.00"), ("4000", "credit"): Decimal("100.00")},
        )
        self.assertEqual(txn.gst_amount, Decimal("9.09"))

        report = trial_balance(self.scheme)
        self.assertTrue(report.is_balanced)
        by_code = {row.code: row for row in report.rows}
        self.assertEqual(by_code["1100"].balance, Decimal("100.00"))
        self.assertEqual(by_code["4000"].balance, Decimal("-100.00"))

        void_transaction(txn.pk)

        report = trial_balance(self.scheme)
        self.assertEqual(report.rows, ())
        self.assertEqual(report.total_debits, Decimal("0.00"))
        # lines survive for audit history
        self.assertEqual(TransactionLine.objects.filter(transaction=txn).count(), 2)

    def test_payment_lines_are_reversed(self):
        txn = payment(self.scheme, "250.00", d("2025-08-01"), fund_type="capital_works", category="6900")
        lines = {(l.account.code, l.side) for l in txn.lines.all()}
        self.assertEqual(lines, {("6900", "debit"), ("1200", "credit")})

    def test_payment_method_defaults(self):
        pay = payment(self.scheme, "10.00", d("2025-08-01"))
        bad = payment(self.scheme, "10.00", d("2025-08-01"), payment_method="paypal")
        cheque = payment(self.scheme, "10.00", d("2025-08-01"), payment_method="cheque")
        rec = receipt(self.scheme, "10.00", d("2025-08-01"), payment_method="paypal")

        self.assertEqual(pay.payment_method, "eft")
        self.assertEqual(bad.payment_method, "eft")
        self.assertEqual(cheque.payment_method, "cheque")
        self.assertIsNone(rec.payment_method)

    def test_balanced_journal(self):
        txn = record_transaction(
            self.scheme,
            {
                "transaction_type": "journal",
                "fund_type": "admin",
                "transaction_date": "2025-08-01",
                "description": "Split insurance invoice",
                "lines": [
                    {"account": default_account("6100"), "side": "debit", "amount": "700.00"},
                    {"account_id": default_account("1400").pk, "side": "debit", "amount": "70.00"},
                    {"account": default_account("2300"), "side": "credit", "amount": "770.00"},
                ],
            },
        )
        self.assertEqual(txn.amount, Decimal("770.00"))
        self.assertIsNone(txn.category)
        self.assertEqual(txn.lines.count(), 3)
        self.assertTrue(txn.is_balanced())

    def test_audit_entry_written(self):
        txn = receipt(self.scheme, "10.00", d("2025-08-01"))
        entry = AuditLog.objects.get(object_type="TrustTransaction", object_id=str(txn.pk))
        self.assertEqual(entry.action, "record")
        self.assertEqual(entry.scheme, self.scheme)


""" Failure tests """
class RecordTransactionValidationTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()

    def assertNothingWritten(self):
        self.assertFalse(TrustTransaction.objects.exists())
        self.assertFalse(TransactionLine.objects.exists())

    def record_receipt(self, amount):
        return record_transaction(
            self.scheme,
            {
                "transaction_type": "receipt",
                "fund_type": "admin",
                "category": default_account("4000"),
                "transaction_date": "2025-08-01",
                "amount": amount,
                "description": "Levy receipt",
            },
        )

    def test_amount_rules(self):
        for amount in ("0.00", "-5.00", "10.001", "abc", None, 10.1):
            with self.subTest(amount=amount), self.assertRaises(ValidationError):
                self.record_receipt(amount)
        self.assertNothingWritten()

    def test_gst_must_fit_in_amount(self):
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), gst_amount="10.01")
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), gst_amount="-1.00")
        self.assertNothingWritten()

    def test_description_and_date_required(self):
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), description="   ")
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", "31/08/2025")
        self.assertNothingWritten()

    def test_category_type_must_suit_transaction(self):
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), category="6000")
        with self.assertRaises(ValidationError):
            payment(self.scheme, "10.00", d("2025-08-01"), category="4000")
        self.assertNothingWritten()

    """ Fund segregation """
    def test_fund_specific_category_rejects_other_fund(self):
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), category="4100", fund_type="capital_works")
        self.assertNothingWritten()

    def test_inactive_category_rejected(self):
        custom = create_account(
            self.scheme, {"code": "4950", "name": "Key Deposits", "account_type": "income"}
        )
        soft_delete_account(custom.pk)
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), category=custom)

    """ An account object loaded before deactivation is re-read """
    def test_stale_account_objects_are_rechecked(self):
        custom = create_account(
            self.scheme, {"code": "2950", "name": "Suspense", "account_type": "liability"}
        )
        stale = Account.objects.get(pk=custom.pk)
        soft_delete_account(custom.pk)
        self.assertTrue(stale.is_active)

        with self.assertRaises(ValidationError):
            record_transaction(
                self.scheme,
                {
                    "transaction_type": "journal",
                    "fund_type": "admin",
                    "transaction_date": "2025-08-01",
                    "description": "Reclass",
                    "lines": [
                        {"account": stale, "side": "debit", "amount": "10.00"},
                        {"account": default_account("2300"), "side": "credit", "amount": "10.00"},
                    ],
                },
            )
        self.assertNothingWritten()

    """ A default hidden by a scheme override cannot be posted to """
    def test_overridden_default_rejected(self):
        override = create_account(
            self.scheme, {"code": "4000", "name": "Levies (Harbour View)", "account_type": "income"}
        )
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), category=default_account("4000"))
        self.assertNothingWritten()

        txn = receipt(self.scheme, "10.00", d("2025-08-01"), category=override)
        self.assertEqual(txn.category, override)

        # other schemes still post to the default
        other = make_scheme(number="SP 2002", name="Bayside")
        receipt(other, "10.00", d("2025-08-01"), category=default_account("4000"))

    def test_malformed_ids_are_not_found(self):
        with self.assertRaises(NotFoundError) as ctx:
            record_transaction(
                self.scheme,
                {"transaction_type": "receipt", "fund_type": "admin", "category": "abc",
                 "transaction_date": "2025-08-01", "amount": "1.00", "description": "x"},
            )
        self.assertEqual(user_message(ctx.exception), "Account abc was not found")
        with self.assertRaises(NotFoundError):
            record_transaction(
                self.scheme,
                {"transaction_type": "payment", "fund_type": "admin", "category_id": ["6000"],
                 "transaction_date": "2025-08-01", "amount": "1.00", "description": "x"},
            )
        with self.assertRaises(NotFoundError):
            void_transaction("xyz")
        self.assertNothingWritten()

    def test_category_of_other_scheme_rejected(self):
        other = make_scheme(number="SP 2002", name="Bayside")
        foreign = create_account(other, {"code": "4950", "name": "Key Deposits", "account_type": "income"})
        with self.assertRaises(ValidationError):
            receipt(self.scheme, "10.00", d("2025-08-01"), category=foreign)

    def test_unbalanced_journal_names_both_totals(self):
        with self.assertRaises(ImbalanceError) as ctx:
            record_transaction(
                self.scheme,
                {
                    "transaction_type": "journal",
                    "fund_type": "admin",
                    "transaction_date": "2025-08-01",
                    "description": "Broken",
                    "lines": [
                        {"account": default_account("6100"), "side": "debit", "amount": "100.00"},
                        {"account": default_account("2300"), "side": "credit", "amount": "90.00"},
                    ],
                },
            )
        self.assertEqual(ctx.exception.total_debits, Decimal("100.00"))
        self.assertEqual(ctx.exception.total_credits, Decimal("90.00"))
        self.assertNothingWritten()

    def test_journal_needs_two_lines(self):
        with self.assertRaises(ValidationError):
            record_transaction(
                self.scheme,
                {
                    "transaction_type": "journal",
                    "fund_type": "admin",
                    "transaction_date": "2025-08-01",
                    "description": "One-legged",
                    "lines": [{"account": default_account("6100"), "side": "debit", "amount": "1.00"}],
                },
            )

    """ Line generation failure rolls back the header insert """
    def test_failed_line_derivation_rolls_back(self):
        def lopsided(txn, trust_account=None, journal_lines=None):
            lines = derive_lines(txn, trust_account=trust_account, journal_lines=journal_lines)
            return lines[:1]

        with mock.patch("trust_accounting.services.ledger.derive_lines", side_effect=lopsided):
            with self.assertRaises(ImbalanceError):
                receipt(self.scheme, "100.00", d("2025-08-01"))
        self.assertNothingWritten()


class VoidTransactionTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()
        self.txn = receipt(self.scheme, "100.00", d("2025-08-01"))

    def test_void_excludes_from_listing(self):
        keep = receipt(self.scheme, "50.00", d("2025-08-02"))
        void_transaction(self.txn.pk)
        self.assertEqual(list(list_transactions(self.scheme)), [keep])

    def test_void_twice_fails(self):
        void_transaction(self.txn.pk)
        with self.assertRaises(ValidationError):
            void_transaction(self.txn.pk)

    def test_reconciled_transaction_cannot_be_voided(self):
        TrustTransaction.objects.filter(pk=self.txn.pk).update(is_reconciled=True)
        with self.assertRaises(ImmutableRecordError):
            void_transaction(self.txn.pk)
        self.txn.refresh_from_db()
        self.assertIsNone(self.txn.deleted_at)

    def test_hard_delete_blocked(self):
        with self.assertRaises(ImmutableRecordError), transaction.atomic():
            self.txn.delete()
        self.assertTrue(TrustTransaction.objects.filter(pk=self.txn.pk).exists())


class LedgerReadTests(TestCase):

    def setUp(self):
        self.scheme = make_scheme()
        receipt(self.scheme, "450.00", d("2025-08-01"), category="4100")
        receipt(self.scheme, "150.00", d("2025-08-01"), category="4200", fund_type="capital_works")
        payment(self.scheme, "120.00", d("2025-08-10"), category="6200")
        payment(self.scheme, "99.00", d("2025-09-10"), category="6200")

    def test_filters(self):
        self.assertEqual(list_transactions(self.scheme, fund_type="capital_works").count(), 1)
        self.assertEqual(list_transactions(self.scheme, transaction_type="payment").count(), 2)
        self.assertEqual(list_transactions(self.scheme, start="2025-08-05", end="2025-08-31").count(), 1)
        self.assertEqual(list_transactions(self.scheme, is_reconciled=False).count(), 4)

    def test_summary_per_fund(self):
        summary = transaction_summary(self.scheme, end="2025-08-31")
        self.assertEqual(summary.funds["admin"].receipts, Decimal("450.00"))
        self.assertEqual(summary.funds["admin"].payments, Decimal("120.00"))
        self.assertEqual(summary.funds["admin"].net, Decimal("330.00"))
        self.assertEqual(summary.funds["capital_works"].net, Decimal("150.00"))
        self.assertEqual(summary.net, Decimal("480.00"))
