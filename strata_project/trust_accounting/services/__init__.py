from .accounts import (accounts_by_type, create_account, get_account,
                       list_effective_accounts, resolve_trust_account,
                       seed_system_accounts, soft_delete_account,
                       update_account)
from .financial_years import (create_financial_year, financial_year_for_date,
                              get_current_financial_year,
                              list_financial_years,
                              set_current_financial_year,
                              update_financial_year)
from .ledger import (derive_lines, list_transactions, pay_maintenance_invoice,
                     record_transaction, transaction_summary,
                     void_transaction)
from .reconciliation import (auto_match, create_transaction_from_bank_line,
                             mark_non_ledger, match_line, propose_matches,
                             reconcile, reconciliation_history, unmatch_line)
from .reports import (fund_balance_summary, income_statement, ledger_balance,
                      trial_balance, transactions_by_category)
from .statement_import import ingest_statement, parse_bank_statement
