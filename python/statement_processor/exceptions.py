"""
Statement Processing Errors

Document-level failures reported to the caller. Problems with individual
lines or rows are never raised; they end up in ParseResult.warnings.
"""


class StatementProcessingError(ValueError):
    """Base class for document-level parsing failures."""


class TextTooShortError(StatementProcessingError):
    """Raised when the cleaned input carries too little text to parse."""

    def __init__(self, length: int, minimum: int):
        self.length = length
        self.minimum = minimum
        super().__init__(
            f"Insufficient text extracted ({length} chars, need at least {minimum})"
        )


class NoTransactionsFoundError(StatementProcessingError):
    """Raised when parsing completed but produced zero transactions."""

    def __init__(self, layout: str, result=None):
        self.layout = layout
        self.result = result
        super().__init__(f"No transactions found in {layout} document")
