"""
Statement Importer

Runs a document through detection, scanning, merging with an alternate
parser and history filtering, producing a ParseResult.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, Mapping

from .currency import ExchangeContext
from .duplicate_detector import DuplicateDetector
from .exceptions import NoTransactionsFoundError, StatementProcessingError, TextTooShortError
from .format_detector import detect_layout, scanner_for
from .interfaces import AlternateParser, HistoryLookup
from .models import ParseResult, StatementLayout, TransactionDraft
from .rules import StatementRules
from .sanitizer import clean_document_text
from .scanners import ScanOutcome, TabularStatementParser

logger = logging.getLogger(__name__)


class StatementImporter:
    """Extracts transaction drafts from statement documents."""

    def __init__(
        self,
        config_dir: Path | str | None = None,
        rules: StatementRules | None = None,
        alternate_parser: AlternateParser | None = None,
        history: HistoryLookup | None = None
    ):
        """Initialize the importer.

        Args:
            config_dir: Path to configuration directory
            rules: Engine rules; loaded from config_dir when omitted
            alternate_parser: Second producer of drafts, e.g. ModelAssistedParser
            history: Lookup of previously imported transactions
        """
        self.rules = rules or StatementRules.load(config_dir)
        self.alternate_parser = alternate_parser
        self.history = history
        self.duplicates = DuplicateDetector(self.rules.dedup_prefix_length)

    def parse_text(
        self,
        text: str,
        filename: str | Path | None = None,
        layout: StatementLayout | None = None
    ) -> ParseResult:
        """Parse one document with the heuristic scanners.

        Args:
            text: Extracted document text
            filename: Original file name, used for format detection
            layout: Force a layout instead of detecting it

        Returns:
            ParseResult with at least one transaction

        Raises:
            TextTooShortError: If the cleaned text is below the minimum length
            NoTransactionsFoundError: If no transaction could be extracted
        """
        cleaned = clean_document_text(text or "")
        if len(cleaned) < self.rules.min_text_length:
            raise TextTooShortError(len(cleaned), self.rules.min_text_length)

        if layout is None:
            detection = detect_layout(text, filename)
            layout = detection.layout
            logger.info(f"Detected layout {layout.value} ({detection.reason})")

        context = ExchangeContext.from_text(cleaned, self.rules.fallback_exchange_rate)
        logger.info(f"Exchange rate {context.rate} ({context.source})")

        scanner = scanner_for(layout, self.rules)
        outcome = scanner.scan_document(text, context)
        result = self._to_result(layout, outcome)

        if not result.transactions:
            logger.warning(f"No transactions found in {layout.value} document")
            raise NoTransactionsFoundError(layout.value, result)

        return result

    def parse_rows(self, rows: Iterable[Mapping[Any, Any]]) -> ParseResult:
        """Parse pre-parsed tabular rows.

        Args:
            rows: Row mappings of column name -> value

        Returns:
            ParseResult with at least one transaction

        Raises:
            NoTransactionsFoundError: If no row produced a transaction
        """
        parser = TabularStatementParser(self.rules)
        outcome = parser.parse_rows(rows, ExchangeContext(rate=self.rules.fallback_exchange_rate))
        result = self._to_result(StatementLayout.TABULAR_CSV, outcome)

        if not result.transactions:
            raise NoTransactionsFoundError(StatementLayout.TABULAR_CSV.value, result)

        return result

    def parse_file(self, file_path: Path | str, layout: StatementLayout | None = None) -> ParseResult:
        """Parse a text or CSV file.

        Args:
            file_path: Path to the file
            layout: Force a layout instead of detecting it

        Returns:
            ParseResult
        """
        file_path = Path(file_path)

        with open(file_path, encoding="utf-8-sig") as f:
            content = f.read()

        return self.parse_text(content, filename=file_path.name, layout=layout)

    def merge_alternate(self, result: ParseResult, drafts: list[TransactionDraft]) -> ParseResult:
        """Union the alternate parser's drafts into a result.

        Heuristic drafts win on key collisions.

        Args:
            result: Result of the heuristic parse
            drafts: Drafts from the alternate parser

        Returns:
            The updated result
        """
        merged = self.duplicates.merge(result.transactions, drafts)
        result.transactions = merged.unique_transactions
        result.candidate_count += len(drafts)
        result.duplicate_count += len(merged.in_batch_duplicates)
        return result

    def import_text(
        self,
        text: str,
        user_id: Any = None,
        filename: str | Path | None = None,
        use_alternate: bool = False
    ) -> ParseResult:
        """Full import: parse, merge the alternate parser, drop known history.

        The alternate parser runs when requested, or when the heuristic
        scanners find nothing.

        Args:
            text: Extracted document text
            user_id: Owner of the history to check against
            filename: Original file name
            use_alternate: Also run the alternate parser on success

        Returns:
            ParseResult

        Raises:
            TextTooShortError: If the cleaned text is below the minimum length
            NoTransactionsFoundError: If nothing new remains
        """
        try:
            result = self.parse_text(text, filename=filename)
        except NoTransactionsFoundError as e:
            if self.alternate_parser is None:
                raise
            logger.info("Heuristic scan found nothing, trying alternate parser")
            result = e.result
            use_alternate = True

        if use_alternate and self.alternate_parser is not None:
            self.merge_alternate(result, self.alternate_parser.parse(text))

        if self.history is not None and user_id is not None:
            filtered = self.duplicates.filter_against_history(
                result.transactions, user_id, self.history
            )
            result.transactions = filtered.unique_transactions
            result.duplicate_count += len(filtered.history_duplicates)

        result.build_summary()

        if not result.transactions:
            raise NoTransactionsFoundError(result.layout.value, result)

        return result

    def _to_result(self, layout: StatementLayout, outcome: ScanOutcome) -> ParseResult:
        result = ParseResult(
            layout=layout,
            transactions=list(outcome.drafts),
            exchange_rate=outcome.context.rate if outcome.context else None,
            rate_source=outcome.context.source if outcome.context else None,
            candidate_count=outcome.candidate_count,
            skipped_count=outcome.skipped_count,
            duplicate_count=outcome.duplicate_count,
            truncated=outcome.truncated,
            warnings=list(outcome.warnings),
        )
        if outcome.truncated:
            result.warnings.append(
                f"Stopped after {outcome.candidate_count} candidates (max_candidates)"
            )
        result.build_summary()
        return result


def main():
    """CLI entry point for testing."""
    import argparse

    parser = argparse.ArgumentParser(description="Extract transactions from a bank statement")
    parser.add_argument("file", help="Statement text or CSV file")
    parser.add_argument(
        "--layout",
        choices=[layout.value for layout in StatementLayout],
        help="Force a layout instead of detecting it",
    )
    parser.add_argument("--config-dir", help="Directory with statement_rules.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    importer = StatementImporter(config_dir=args.config_dir)
    layout = StatementLayout(args.layout) if args.layout else None

    try:
        result = importer.parse_file(args.file, layout=layout)
    except StatementProcessingError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
