# Organisation-wide system chart of accounts.
# Seeded with scheme=NULL and is_system=True; schemes add or override
# accounts with their own rows using the same code.
# (code, name, account_type, fund_type)
SYSTEM_ACCOUNTS = [
    # Assets: one trust (cash at bank) account per fund
    ("1100", "Admin Fund Trust Account", "asset", "admin"),
    ("1200", "Capital Works Fund Trust Account", "asset", "capital_works"),
    ("1300", "Levies Receivable", "asset", None),
    ("1400", "GST Receivable", "asset", None),
    # Liabilities
    ("2100", "GST Payable", "liability", None),
    ("2200", "Levies Paid in Advance", "liability", None),
    ("2300", "Creditors", "liability", None),
    # Equity
    ("3100", "Admin Fund Accumulated Surplus", "equity", "admin"),
    ("3200", "Capital Works Fund Accumulated Surplus", "equity", "capital_works"),
    # Income
    ("4000", "Levy Income", "income", None),
    ("4100", "Levy Income - Admin", "income", "admin"),
    ("4200", "Levy Income - Capital Works", "income", "capital_works"),
    ("4300", "Interest Income", "income", None),
    ("4400", "Special Levy Income", "income", None),
    ("4900", "Other Income", "income", None),
    # Expenses
    ("6000", "Repairs & Maintenance", "expense", None),
    ("6100", "Insurance", "expense", "admin"),
    ("6200", "Cleaning", "expense", "admin"),
    ("6300", "Gardening & Grounds", "expense", "admin"),
    ("6400", "Electricity - Common Property", "expense", "admin"),
    ("6500", "Water", "expense", "admin"),
    ("6600", "Management Fees", "expense", "admin"),
    ("6700", "Audit & Accounting Fees", "expense", "admin"),
    ("6800", "Bank Fees", "expense", None),
    ("6900", "Capital Works Projects", "expense", "capital_works"),
]
