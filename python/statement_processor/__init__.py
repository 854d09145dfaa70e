"""
Statement Processor Module

Turns bank statement documents (tabular exports or text recovered from
printed statements) into normalized transaction drafts.
"""

from .exceptions import (
    StatementProcessingError,
    TextTooShortError,
    NoTransactionsFoundError,
)
from .models import (
    CompositeKey,
    Direction,
    ParseResult,
    StatementLayout,
    TransactionDraft,
)
from .currency import (
    AmountPolicy,
    AmountResolution,
    AmountResolver,
    ColumnRole,
    Currency,
    ExchangeContext,
    MonetaryToken,
    extract_monetary_tokens,
    parse_amount,
)
from .direction import DirectionClassifier, DirectionCue, DirectionDecision
from .sanitizer import (
    clean_description,
    extract_merchant_name,
    is_valid_text,
    sanitize_description,
)
from .row_normalizer import NormalizedRow, RowNormalizer
from .rules import StatementRules
from .scanners import (
    ForeignCurrencyScanner,
    LocalLedgerScanner,
    ScannerState,
    TabularStatementParser,
)
from .format_detector import LayoutDetection, detect_layout, scanner_for
from .duplicate_detector import DuplicateDetector, DeduplicationResult
from .interfaces import AlternateParser, HistoryLookup
from .ai_parser import ModelAssistedParser
from .importer import StatementImporter

__all__ = [
    # Errors
    "StatementProcessingError",
    "TextTooShortError",
    "NoTransactionsFoundError",
    # Models
    "CompositeKey",
    "Direction",
    "ParseResult",
    "StatementLayout",
    "TransactionDraft",
    # Amounts
    "AmountPolicy",
    "AmountResolution",
    "AmountResolver",
    "ColumnRole",
    "Currency",
    "ExchangeContext",
    "MonetaryToken",
    "extract_monetary_tokens",
    "parse_amount",
    # Direction
    "DirectionClassifier",
    "DirectionCue",
    "DirectionDecision",
    # Sanitizer
    "clean_description",
    "extract_merchant_name",
    "is_valid_text",
    "sanitize_description",
    # Tabular rows
    "NormalizedRow",
    "RowNormalizer",
    # Rules
    "StatementRules",
    # Scanners
    "ForeignCurrencyScanner",
    "LocalLedgerScanner",
    "ScannerState",
    "TabularStatementParser",
    "LayoutDetection",
    "detect_layout",
    "scanner_for",
    # Deduplication
    "DuplicateDetector",
    "DeduplicationResult",
    "AlternateParser",
    "HistoryLookup",
    # Pipeline
    "ModelAssistedParser",
    "StatementImporter",
]
