"""
Layout-specific statement scanners.
"""

from .base import (
    BaseStatementScanner,
    LineKind,
    PendingEntry,
    ScanAction,
    ScannerState,
    ScanOutcome,
    transition,
)
from .foreign_currency import ForeignCurrencyScanner
from .local_ledger import LocalLedgerScanner
from .tabular import TabularStatementParser, detect_delimiter

__all__ = [
    "BaseStatementScanner",
    "LineKind",
    "PendingEntry",
    "ScanAction",
    "ScannerState",
    "ScanOutcome",
    "transition",
    "ForeignCurrencyScanner",
    "LocalLedgerScanner",
    "TabularStatementParser",
    "detect_delimiter",
]
