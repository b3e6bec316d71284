"""
Transaction Ledger Module (``agency_modules.transactions``).

Income and expense records with eager multi-currency conversion.  All
writes go through ``TransactionService``.
"""

from agency_modules.transactions.service import UPDATABLE_FIELDS, TransactionService

__all__ = ["TransactionService", "UPDATABLE_FIELDS"]
