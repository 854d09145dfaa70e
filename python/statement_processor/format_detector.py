"""
Statement Format Detector

Chooses the scanner for a document from its file extension, bank-name
markers, tabular structure and layout-typical fragments.
"""

import csv
import logging
import re
from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path

from .currency import extract_monetary_tokens
from .models import StatementLayout
from .rules import StatementRules
from .scanners import (
    BaseStatementScanner,
    ForeignCurrencyScanner,
    LocalLedgerScanner,
    TabularStatementParser,
    detect_delimiter,
)

logger = logging.getLogger(__name__)

TABULAR_EXTENSIONS = {".csv", ".tsv"}

SCANNERS: dict[StatementLayout, type] = {
    StatementLayout.FOREIGN_CURRENCY: ForeignCurrencyScanner,
    StatementLayout.LOCAL_LEDGER: LocalLedgerScanner,
    StatementLayout.TABULAR_CSV: TabularStatementParser,
}

# Layouts in marker-priority order
TEXT_LAYOUTS: list[type[BaseStatementScanner]] = [
    ForeignCurrencyScanner,
    LocalLedgerScanner,
]

_DATE_LIKE = re.compile(r"\d{1,4}[./-]\d{1,2}[./-]\d{1,4}")


@dataclass(frozen=True)
class LayoutDetection:
    """Detected layout and the evidence for it."""

    layout: StatementLayout
    reason: str  # 'extension', 'bank_marker', 'tabular', 'layout_marker' or 'fallback'
    markers: tuple[str, ...] = field(default=())


def _bank_marker_hits(text: str, markers: tuple[str, ...]) -> list[tuple[int, str]]:
    """Positions of bank-name markers, overlapping hits counted once."""
    spans = []
    for marker in markers:
        pattern = re.compile(rf"(?<!\w){re.escape(marker)}(?!\w)", re.IGNORECASE)
        for match in pattern.finditer(text):
            spans.append((match.start(), match.end(), marker))

    # Longest first, so "Банка ДСК" absorbs the "ДСК" inside it
    spans.sort(key=lambda s: (s[0], -(s[1] - s[0])))
    hits = []
    covered_until = -1
    for start, end, marker in spans:
        if start < covered_until:
            continue
        hits.append((start, marker))
        covered_until = end
    return hits


def _layout_marker_hits(text: str, patterns: list[re.Pattern]) -> list[tuple[int, str]]:
    hits = []
    for pattern in patterns:
        for match in pattern.finditer(text):
            hits.append((match.start(), match.group(0)))
    return sorted(hits)


def _pick(
    hits_by_layout: dict[StatementLayout, list[tuple[int, str]]]
) -> tuple[StatementLayout, list[tuple[int, str]]] | None:
    """Layout with the most hits; on a tie, the one with the earliest hit."""
    candidates = [(layout, hits) for layout, hits in hits_by_layout.items() if hits]
    if not candidates:
        return None
    return min(candidates, key=lambda item: (-len(item[1]), item[1][0][0]))


def is_tabular(text: str, sample_lines: int = 10) -> bool:
    """Check whether text is a delimited table with a header row.

    Args:
        text: Document text
        sample_lines: Number of leading non-empty lines to inspect

    Returns:
        True if the sampled lines share a field count of at least 3 and the
        first line reads as a header
    """
    lines = [line for line in (text or "").splitlines() if line.strip()][:sample_lines]
    if len(lines) < 2:
        return False

    delimiter = detect_delimiter("\n".join(lines))
    try:
        rows = list(csv.reader(StringIO("\n".join(lines)), delimiter=delimiter))
    except csv.Error:
        return False

    counts = {len(row) for row in rows}
    if len(counts) != 1 or counts.pop() < 3:
        return False

    header = lines[0]
    return not extract_monetary_tokens(header) and not _DATE_LIKE.search(header)


def detect_layout(text: str, filename: str | Path | None = None) -> LayoutDetection:
    """Detect the layout of a statement document.

    Args:
        text: Document text
        filename: Original file name, if known

    Returns:
        LayoutDetection
    """
    if filename and Path(filename).suffix.lower() in TABULAR_EXTENSIONS:
        return LayoutDetection(StatementLayout.TABULAR_CSV, "extension", (Path(filename).suffix,))

    text = text or ""

    # Bank names outrank every other marker
    bank_hits = {
        scanner.LAYOUT: _bank_marker_hits(text, scanner.BANK_MARKERS)
        for scanner in TEXT_LAYOUTS
    }
    picked = _pick(bank_hits)
    if picked:
        layout, hits = picked
        return LayoutDetection(layout, "bank_marker", tuple(m for _, m in hits))

    # Column names of tabular exports look like layout markers, so structure goes first
    if is_tabular(text):
        return LayoutDetection(StatementLayout.TABULAR_CSV, "tabular")

    layout_hits = {
        scanner.LAYOUT: _layout_marker_hits(text, scanner.LAYOUT_MARKERS)
        for scanner in TEXT_LAYOUTS
    }
    picked = _pick(layout_hits)
    if picked:
        layout, hits = picked
        return LayoutDetection(layout, "layout_marker", tuple(m for _, m in hits[:10]))

    return LayoutDetection(StatementLayout.LOCAL_LEDGER, "fallback")


def scanner_for(layout: StatementLayout, rules: StatementRules | None = None):
    """Instantiate the scanner for a layout.

    Args:
        layout: Detected layout
        rules: Engine rules

    Returns:
        Scanner exposing scan(text) and scan_document(text, context)
    """
    return SCANNERS[layout](rules)
