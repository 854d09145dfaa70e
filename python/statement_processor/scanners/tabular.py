"""
Tabular Statement Parser

Reads delimited exports (CSV/TSV) whose column names vary from bank to bank,
normalizing each row through the RowNormalizer.
"""

import csv
import logging
from io import StringIO
from typing import Any, Iterable, Mapping

from ..currency import ExchangeContext
from ..duplicate_detector import DuplicateDetector
from ..models import StatementLayout, TransactionDraft
from ..row_normalizer import RowNormalizer
from ..rules import StatementRules
from .base import ScanOutcome, ScannerState

logger = logging.getLogger(__name__)

DELIMITERS = ",;\t|"


def detect_delimiter(text: str) -> str:
    """Detect the delimiter of delimited text.

    Args:
        text: Delimited text

    Returns:
        Delimiter character, "," when nothing better is found
    """
    sample = "\n".join(text.splitlines()[:20])
    try:
        return csv.Sniffer().sniff(sample, delimiters=DELIMITERS).delimiter
    except csv.Error:
        pass

    # Fall back to the delimiter that appears most on the header line
    header = sample.split("\n", 1)[0]
    counts = {d: header.count(d) for d in DELIMITERS}
    best = max(counts, key=counts.get)
    return best if counts[best] > 0 else ","


class TabularStatementParser:
    """Parses tabular statement exports into transaction drafts."""

    LAYOUT = StatementLayout.TABULAR_CSV
    SOURCE = "tabular"

    def __init__(self, rules: StatementRules | None = None):
        """Initialize the parser.

        Args:
            rules: Engine rules; defaults are used when omitted
        """
        self.rules = rules or StatementRules()
        self.normalizer = RowNormalizer(self.rules.column_synonyms)

    def scan(self, text: str) -> list[TransactionDraft]:
        """Parse delimited text into drafts."""
        return self.scan_document(text).drafts

    def parse(self, text: str) -> list[TransactionDraft]:
        return self.scan(text)

    def scan_document(
        self,
        text: str,
        context: ExchangeContext | None = None
    ) -> ScanOutcome:
        """Parse delimited text, reporting counts alongside the drafts.

        Args:
            text: CSV/TSV content with a header row
            context: Exchange context for BGN amounts

        Returns:
            ScanOutcome
        """
        # Remove BOM if present
        if text.startswith("\ufeff"):
            text = text[1:]
        text = text.replace("\r\n", "\n").replace("\r", "\n").strip("\n")

        if not text:
            return ScanOutcome(context=context or ExchangeContext())

        context = context or ExchangeContext.from_text(text, self.rules.fallback_exchange_rate)
        reader = csv.DictReader(StringIO(text), delimiter=detect_delimiter(text))
        return self.parse_rows(reader, context)

    def parse_rows(
        self,
        rows: Iterable[Mapping[Any, Any]],
        context: ExchangeContext | None = None
    ) -> ScanOutcome:
        """Normalize pre-parsed rows into drafts.

        Args:
            rows: Row mappings of column name -> value
            context: Exchange context for BGN amounts

        Returns:
            ScanOutcome
        """
        context = context or ExchangeContext(rate=self.rules.fallback_exchange_rate)
        outcome = ScanOutcome(context=context, final_state=ScannerState.IN_TABLE)
        limit = self.rules.max_candidates

        for row_num, row in enumerate(rows, start=2):
            if limit is not None and outcome.candidate_count >= limit:
                outcome.truncated = True
                logger.warning(f"Stopped at row {row_num}: {outcome.candidate_count} candidates")
                break

            # Blank and single-field rows are not candidates
            if sum(1 for k, v in row.items() if k is not None and str(v or "").strip()) < 2:
                continue

            outcome.candidate_count += 1
            normalized = self.normalizer.normalize(row)
            if normalized is None:
                outcome.skipped_count += 1
                logger.debug(f"Row {row_num} skipped")
                continue

            try:
                draft = self.normalizer.to_draft(
                    normalized, context, self.rules.description_max_length
                )
            except ValueError as e:
                outcome.skipped_count += 1
                outcome.warnings.append(f"Row {row_num}: {e}")
                continue

            outcome.drafts.append(draft)

        outcome.final_state = ScannerState.DONE

        dedup = DuplicateDetector(self.rules.dedup_prefix_length).dedupe(outcome.drafts)
        outcome.drafts = dedup.unique_transactions
        outcome.duplicate_count = len(dedup.in_batch_duplicates)

        return outcome
