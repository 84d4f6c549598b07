from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra.django import TestCase

from trust_accounting.exceptions import ImbalanceError
from trust_accounting.models import TrustTransaction
from trust_accounting.services.ledger import record_transaction
from trust_accounting.services.reports import ledger_balance, trial_balance

from .helpers import d, default_account, make_scheme, payment, receipt

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

movements = st.lists(
    st.tuples(st.sampled_from(["receipt", "payment"]), amounts),
    min_size=1,
    max_size=8,
)


# Each example runs in its own transaction, so the scheme is built per example
class DoubleEntryPropertyTests(TestCase):

    """ Whatever is recorded, the ledger stays balanced """
    @settings(max_examples=25, deadline=None)
    @given(movements)
    def test_trial_balance_always_balances(self, moves):
        scheme = make_scheme()
        expected = Decimal("0.00")
        for kind, amount in moves:
            if kind == "receipt":
                receipt(scheme, amount, d("2025-08-01"))
                expected += amount
            else:
                payment(scheme, amount, d("2025-08-01"))
                expected -= amount

        report = trial_balance(scheme)
        self.assertTrue(report.is_balanced)
        self.assertEqual(ledger_balance(scheme, "admin"), expected)
        for txn in TrustTransaction.objects.for_scheme(scheme):
            self.assertTrue(txn.is_balanced())

    @settings(max_examples=25, deadline=None)
    @given(st.lists(amounts, min_size=1, max_size=5), amounts, st.booleans())
    def test_journal_persists_only_when_balanced(self, debits, credit, balanced):
        scheme = make_scheme()
        if balanced:
            credit = sum(debits)
        lines = [
            {"account": default_account("6100"), "side": "debit", "amount": amount}
            for amount in debits
        ]
        lines.append({"account": default_account("2300"), "side": "credit", "amount": credit})
        data = {
            "transaction_type": "journal",
            "fund_type": "admin",
            "transaction_date": "2025-08-01",
            "description": "Accrual",
            "lines": lines,
        }

        if sum(debits) == credit:
            txn = record_transaction(scheme, data)
            self.assertTrue(txn.is_balanced())
        else:
            with self.assertRaises(ImbalanceError):
                record_transaction(scheme, data)
            self.assertFalse(TrustTransaction.objects.for_scheme(scheme).exists())
