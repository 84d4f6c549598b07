from .account import Account
from .auditlog import AuditLog
from .banking import BankStatement, BankStatementLine, Reconciliation
from .financial_year import FinancialYear
from .invoice import MaintenanceInvoice
from .scheme import Organisation, Scheme
from .transaction import TransactionLine, TrustTransaction
