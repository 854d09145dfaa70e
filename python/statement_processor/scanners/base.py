"""
Base Statement Scanner Module

Line-by-line reader for statement text driven by an explicit state machine.
Layout-specific scanners supply the date format and marker vocabularies.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from ..currency import (
    AmountResolver,
    ColumnRole,
    Currency,
    ExchangeContext,
    extract_monetary_tokens,
)
from ..direction import DirectionClassifier
from ..duplicate_detector import DuplicateDetector
from ..models import StatementLayout, TransactionDraft
from ..rules import StatementRules
from ..sanitizer import clean_document_text, sanitize_description, strip_noise

logger = logging.getLogger(__name__)


class ScannerState(Enum):
    SEEKING_TABLE = "seeking_table"
    IN_TABLE = "in_table"
    DONE = "done"


class LineKind(Enum):
    BLANK = "blank"
    NOISE = "noise"  # Page markers, letterhead, opening balance
    HEADER = "header"
    TRAILER = "trailer"
    ENTRY = "entry"  # Starts with a date
    CONTINUATION = "continuation"


class ScanAction(Enum):
    SKIP = "skip"
    START = "start"  # Finalize the pending entry, open a new one
    APPEND = "append"  # Add the line to the pending entry
    FINISH = "finish"  # Finalize the pending entry, stop reading


def transition(
    state: ScannerState,
    kind: LineKind,
    *,
    has_money: bool = False,
    has_pending: bool = False,
    collected: int = 0
) -> tuple[ScannerState, ScanAction]:
    """Compute the next scanner state and the action for one line.

    Args:
        state: Current state
        kind: Classification of the line
        has_money: Whether the line carries a monetary token
        has_pending: Whether an entry is being collected
        collected: Transactions collected so far, pending entry included

    Returns:
        Tuple of (next state, action)
    """
    if state is ScannerState.DONE:
        return ScannerState.DONE, ScanAction.SKIP

    if state is ScannerState.SEEKING_TABLE:
        if kind is LineKind.HEADER:
            return ScannerState.IN_TABLE, ScanAction.SKIP
        if kind is LineKind.ENTRY:
            # An entry without money stays tentative until a continuation supplies it
            next_state = ScannerState.IN_TABLE if has_money else ScannerState.SEEKING_TABLE
            return next_state, ScanAction.START
        if kind is LineKind.CONTINUATION and has_pending:
            next_state = ScannerState.IN_TABLE if has_money else ScannerState.SEEKING_TABLE
            return next_state, ScanAction.APPEND
        return ScannerState.SEEKING_TABLE, ScanAction.SKIP

    # IN_TABLE
    if kind is LineKind.ENTRY:
        return ScannerState.IN_TABLE, ScanAction.START
    if kind is LineKind.CONTINUATION:
        action = ScanAction.APPEND if has_pending else ScanAction.SKIP
        return ScannerState.IN_TABLE, action
    if kind is LineKind.TRAILER and collected > 0:
        return ScannerState.DONE, ScanAction.FINISH
    # Repeated page headers, noise and early trailers never end the table
    return ScannerState.IN_TABLE, ScanAction.SKIP


@dataclass
class PendingEntry:
    """An entry being collected: its date line plus continuation lines."""

    date: date
    date_span: tuple[int, int]
    lines: list[str] = field(default_factory=list)
    columns: list[ColumnRole] | None = None
    has_money: bool = False

    @property
    def continuation_count(self) -> int:
        return len(self.lines) - 1

    @property
    def text(self) -> str:
        return " ".join(self.lines)


@dataclass
class ScanOutcome:
    """Result of scanning one document."""

    drafts: list[TransactionDraft] = field(default_factory=list)
    candidate_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    truncated: bool = False
    warnings: list[str] = field(default_factory=list)
    final_state: ScannerState = ScannerState.SEEKING_TABLE
    context: ExchangeContext | None = None


# Column header vocabulary shared by all layouts
HEADER_DATE_WORDS = re.compile(r"(?<!\w)(?:date|дата)(?!\w)", re.IGNORECASE)
HEADER_COLUMN_WORDS = re.compile(
    r"(?<!\w)(?:description|details|amount|balance|money\s+(?:out|in)|paid\s+(?:out|in)"
    r"|debit|credit|reference|описание|основание|сума|дебит|кредит|салдо|баланс"
    r"|валута|контрагент)(?!\w)",
    re.IGNORECASE,
)
HEADER_ROLE_WORDS = [
    (ColumnRole.OUT, re.compile(
        r"(?<!\w)(?:money\s+out|paid\s+out|debit|дебит|withdrawals?|разход)(?!\w)", re.IGNORECASE)),
    (ColumnRole.IN, re.compile(
        r"(?<!\w)(?:money\s+in|paid\s+in|credit|кредит|deposits?|приход)(?!\w)", re.IGNORECASE)),
    (ColumnRole.BALANCE, re.compile(r"(?<!\w)(?:balance|баланс|салдо)(?!\w)", re.IGNORECASE)),
    (ColumnRole.AMOUNT, re.compile(r"(?<!\w)(?:amount|сума)(?!\w)", re.IGNORECASE)),
]

NOISE_PATTERNS = [
    re.compile(r"^(?:page|стр\.?|страница)\s*\d+(?:\s*(?:of|от|/)\s*\d+)?$", re.IGNORECASE),
    re.compile(r"^-*\s*\d+\s*(?:/|of|от)\s*\d+\s*-*$", re.IGNORECASE),
    re.compile(
        r"^(?:opening\s+balance|balance\s+brought\s+forward|начално\s+салдо|начален\s+баланс)",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(?:iban|bic|swift|account\s+(?:holder|number)|титуляр|сметка\s*:|клиент\s*:"
        r"|statement\s+(?:period|date)|период\s*:|generated\s+on|генерирано|www\.)",
        re.IGNORECASE,
    ),
]

TRAILER_PATTERNS = [
    re.compile(
        r"^(?:closing\s+balance|balance\s+carried\s+forward|balance\s+summary|account\s+summary"
        r"|total\s+(?:money\s+(?:in|out)|paid\s+(?:in|out)|debits?|credits?|turnover|for\s+the\s+period)"
        r"|totals?\s*:|крайно\s+салдо|краен\s+баланс|обороти|общо(?!\w)|оборот\s+за\s+периода)",
        re.IGNORECASE,
    ),
]

_CODE_TOKEN_RE = re.compile(r"(?<!\w)(?:Дт|Кт|ДТ|КТ|дт|кт|DT|KT|Dt|Kt|DR|CR|Д|К)\.?(?!\w)")
_TIME_RE = re.compile(r"(?<![\d:])\d{1,2}:\d{2}(?::\d{2})?(?![\d:])")
_BARE_DECIMAL_RE = re.compile(r"(?<![\w.,])[-+−]?\d[\d\s]*[.,]\d{2}(?![\w.,])")
_EMPTY_PARENS_RE = re.compile(r"\(\s*[/\-]?\s*\)")
_COLUMN_LABEL_RE = re.compile(
    r"(?<!\w)(?:money\s+(?:out|in)|paid\s+(?:out|in)|balance|баланс|салдо)\s*:", re.IGNORECASE
)
# A balance word directly in front of an amount, with or without a colon
_BALANCE_LABEL_RE = re.compile(
    r"(?<!\w)(?:balance|баланс|салдо)\s*:?(?=\s*(?:[€$£(+\-−]|BGN|EUR)?\s*\d)",
    re.IGNORECASE,
)


class BaseStatementScanner(ABC):
    """Abstract base class for layout-specific statement scanners."""

    LAYOUT: StatementLayout = StatementLayout.LOCAL_LEDGER
    SOURCE: str = "unknown"

    # Institution names that identify the layout
    BANK_MARKERS: tuple[str, ...] = ()

    # Layout-typical fragments, counted by the format detector
    LAYOUT_MARKERS: list[re.Pattern] = []

    # Currency of unmarked amounts; None means unmarked numbers are not money
    BARE_CURRENCY: Currency | None = None

    # Dates anywhere in a line, removed from descriptions
    DATE_ANYWHERE: re.Pattern = re.compile(r"\d{1,2}\.\d{1,2}\.\d{4}")

    def __init__(self, rules: StatementRules | None = None):
        """Initialize the scanner.

        Args:
            rules: Engine rules; defaults are used when omitted
        """
        self.rules = rules or StatementRules()
        self.classifier = DirectionClassifier(
            self.rules.income_keywords, self.rules.expense_keywords
        )

    @abstractmethod
    def match_date(self, line: str) -> tuple[date, int, int] | None:
        """Match a date at the start of a line.

        Args:
            line: Text line

        Returns:
            Tuple of (date, start, end), or None if the line does not start
            with a valid date in this layout's format
        """
        pass

    def scan(self, text: str) -> list[TransactionDraft]:
        """Scan statement text into transaction drafts."""
        return self.scan_document(text).drafts

    def classify_line(self, line: str) -> LineKind:
        """Classify a line for the state machine."""
        if not line.strip():
            return LineKind.BLANK

        dated = self.match_date(line)
        body = line[dated[2]:].strip() if dated else line.strip()

        if any(p.search(body) for p in NOISE_PATTERNS):
            return LineKind.NOISE
        if not dated and self.is_letterhead(body):
            return LineKind.NOISE
        if any(p.search(body) for p in TRAILER_PATTERNS):
            return LineKind.TRAILER
        if dated:
            return LineKind.ENTRY
        if self.is_header(line):
            return LineKind.HEADER
        return LineKind.CONTINUATION

    def is_letterhead(self, line: str) -> bool:
        """Check whether a line is a short bank-name banner."""
        lowered = line.lower()
        if len(lowered) > 60 or self.has_money(line):
            return False
        return any(lowered.startswith(marker.lower()) for marker in self.BANK_MARKERS)

    def is_header(self, line: str) -> bool:
        """Check whether a line is a table column header."""
        if self.has_money(line):
            return False
        return bool(HEADER_DATE_WORDS.search(line) and HEADER_COLUMN_WORDS.search(line))

    def column_roles(self, header: str) -> list[ColumnRole] | None:
        """Money column roles of a header line, left to right.

        Args:
            header: Header line

        Returns:
            List of ColumnRole, or None if the header names no money column
        """
        found: list[tuple[int, ColumnRole]] = []
        for role, pattern in HEADER_ROLE_WORDS:
            for match in pattern.finditer(header):
                found.append((match.start(), role))

        found.sort(key=lambda item: item[0])
        roles = [role for _, role in found]
        return roles or None

    def has_money(self, line: str) -> bool:
        return bool(extract_monetary_tokens(line, self.BARE_CURRENCY))

    def scan_document(
        self,
        text: str,
        context: ExchangeContext | None = None
    ) -> ScanOutcome:
        """Scan statement text, reporting counts alongside the drafts.

        Args:
            text: Extracted statement text
            context: Exchange context; computed from the text when omitted

        Returns:
            ScanOutcome
        """
        text = clean_document_text(text)
        context = context or ExchangeContext.from_text(text, self.rules.fallback_exchange_rate)
        resolver = AmountResolver(context, self.classifier, self.BARE_CURRENCY)

        outcome = ScanOutcome(context=context)
        state = ScannerState.SEEKING_TABLE
        pending: PendingEntry | None = None
        columns: list[ColumnRole] | None = None
        lines = text.split("\n") if text else []

        for line_num, line in enumerate(lines, start=1):
            kind = self.classify_line(line)
            money = kind in (LineKind.ENTRY, LineKind.CONTINUATION) and self.has_money(line)
            collected = len(outcome.drafts) + (1 if pending and pending.has_money else 0)

            state, action = transition(
                state,
                kind,
                has_money=money,
                has_pending=pending is not None,
                collected=collected,
            )

            if kind is LineKind.HEADER:
                columns = self.column_roles(line) or columns

            if action is ScanAction.START:
                self._finalize(pending, resolver, outcome)
                pending = None
                if self._limit_reached(outcome):
                    outcome.truncated = True
                    logger.warning(
                        f"Stopped at line {line_num}: {outcome.candidate_count} candidates"
                    )
                    break
                entry_date, start, end = self.match_date(line)
                pending = PendingEntry(
                    date=entry_date,
                    date_span=(start, end),
                    lines=[line],
                    columns=columns,
                    has_money=money,
                )

            elif action is ScanAction.APPEND:
                if pending.continuation_count >= self.rules.continuation_lookahead:
                    logger.debug(f"Line {line_num}: continuation lookahead exceeded")
                    self._finalize(pending, resolver, outcome)
                    pending = None
                    continue
                pending.lines.append(line)
                pending.has_money = pending.has_money or money

            elif action is ScanAction.FINISH:
                self._finalize(pending, resolver, outcome)
                pending = None
                break

        if pending is not None:
            self._finalize(pending, resolver, outcome)

        outcome.final_state = state

        # In-pass deduplication
        dedup = DuplicateDetector(self.rules.dedup_prefix_length).dedupe(outcome.drafts)
        outcome.drafts = dedup.unique_transactions
        outcome.duplicate_count = len(dedup.in_batch_duplicates)

        return outcome

    def _limit_reached(self, outcome: ScanOutcome) -> bool:
        limit = self.rules.max_candidates
        return limit is not None and outcome.candidate_count >= limit

    def _finalize(
        self,
        pending: PendingEntry | None,
        resolver: AmountResolver,
        outcome: ScanOutcome
    ) -> None:
        """Turn a collected entry into a draft, or count it as skipped."""
        if pending is None or not pending.has_money:
            return

        outcome.candidate_count += 1
        full_text = pending.text

        amount_line = self.amount_line(pending)
        if amount_line is None:
            outcome.skipped_count += 1
            return

        keyword_direction = self.classifier.keyword_cue(full_text)
        resolution = resolver.resolve(amount_line, pending.columns, keyword_direction)
        if resolution is None:
            outcome.skipped_count += 1
            logger.debug(f"Entry skipped, no usable amount: {full_text[:60]!r}")
            return

        decision = self.classifier.classify(full_text, resolution.layout_direction)
        description = self.build_description(pending)

        try:
            draft = TransactionDraft(
                date=pending.date,
                description=sanitize_description(
                    description, decision.direction, self.rules.description_max_length
                ),
                amount=resolution.amount,
                direction=decision.direction,
                source=self.SOURCE,
                raw_text=full_text,
            )
        except ValueError as e:
            outcome.skipped_count += 1
            outcome.warnings.append(f"Entry {pending.date.isoformat()}: {e}")
            return

        outcome.drafts.append(draft)

    def amount_line(self, pending: PendingEntry) -> str | None:
        """Pick the entry line that holds the transaction amount.

        Fee, rate and reference annotations are removed before a line is
        considered. A line whose only money sits in such an annotation is
        used as is when no other line carries money.

        Args:
            pending: Collected entry

        Returns:
            Line text for the amount resolver, or None if no line has money
        """
        fallback = None
        for line in pending.lines:
            if not extract_monetary_tokens(line, self.BARE_CURRENCY):
                continue
            stripped = strip_noise(line)
            if extract_monetary_tokens(stripped, self.BARE_CURRENCY):
                return stripped
            if fallback is None:
                fallback = line
        return fallback

    def build_description(self, pending: PendingEntry) -> str:
        """Entry text without the date, amounts, codes and other numbers."""
        parts = []
        for index, line in enumerate(pending.lines):
            if index == 0:
                start, end = pending.date_span
                line = line[:start] + " " + line[end:]

            stripped = strip_noise(line)
            # An annotation holding all the money of the entry line is the
            # transaction itself ("такса 3.00")
            is_annotation_entry = (
                index == 0
                and extract_monetary_tokens(line, self.BARE_CURRENCY)
                and not extract_monetary_tokens(stripped, self.BARE_CURRENCY)
            )
            if not is_annotation_entry:
                line = stripped
            line = _BALANCE_LABEL_RE.sub(" ", line)

            tokens = extract_monetary_tokens(line, self.BARE_CURRENCY)
            for token in reversed(tokens):
                line = line[:token.start] + " " + line[token.end:]

            line = self.DATE_ANYWHERE.sub(" ", line)
            line = _TIME_RE.sub(" ", line)
            line = _BARE_DECIMAL_RE.sub(" ", line)
            line = _CODE_TOKEN_RE.sub(" ", line)
            line = _COLUMN_LABEL_RE.sub(" ", line)
            line = _EMPTY_PARENS_RE.sub(" ", line)
            parts.append(line)

        return " ".join(" ".join(parts).split())
