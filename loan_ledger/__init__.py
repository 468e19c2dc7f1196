"""
Loan Ledger

Loan amortization and ledger-balance reconciliation for a multi-tenant
bookkeeping application. Balances are always derived from payment history
using Decimal arithmetic, never read back from a stored counter.
"""

__version__ = "1.0.0"
