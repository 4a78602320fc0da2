"""
Ledger enumerations.
"""

import enum


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enumeration."""
    DEBIT = "DEBIT"  # Money leaving the wallet
    CREDIT = "CREDIT"  # Money entering the wallet


class AdjustmentDirection(str, enum.Enum):
    """Direction of an admin-initiated wallet adjustment."""
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
