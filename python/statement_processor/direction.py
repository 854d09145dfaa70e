"""
Direction Classifier Module

Decides whether a statement entry is income or expense from layout cues
(debit/credit codes next to the amount, money in/out columns) or, failing
that, from bilingual keyword cues.
"""

import re
from dataclasses import dataclass
from enum import Enum

from .models import Direction

DEFAULT_INCOME_KEYWORDS = (
    "transfer from",
    "payment from",
    "received from",
    "money in",
    "paid in",
    "deposit",
    "apple pay deposit",
    "top-up",
    "top up",
    "refund",
    "cashback",
    "salary",
    "interest earned",
    "exchanged to",
    "incoming transfer",
    "получен превод",
    "входящ превод",
    "превод от",
    "постъпление",
    "депозит",
    "възстановяване",
    "възстановена сума",
    "заплата",
    "захранване",
    "приход",
)

DEFAULT_EXPENSE_KEYWORDS = (
    "transfer to",
    "payment to",
    "paid to",
    "money out",
    "paid out",
    "withdrawal",
    "cash withdrawal",
    "atm",
    "payment",
    "card payment",
    "purchase",
    "direct debit",
    "subscription",
    "exchanged from",
    "outgoing transfer",
    "теглене",
    "плащане",
    "покупка",
    "превод към",
    "изходящ превод",
    "такса",
    "комисиона",
    "разход",
)

# Two-letter debit/credit codes printed next to ledger amounts
DEBIT_CODES = ("дт", "dt", "dr", "д")
CREDIT_CODES = ("кт", "kt", "cr", "к")

_CODE = r"(?P<code>дт|кт|dt|kt|dr|cr|д|к)\.?"
_CODE_BEFORE_RE = re.compile(rf"(?<!\w){_CODE}\s*[:\-]?\s*\(?\s*$", re.IGNORECASE)
_CODE_AFTER_RE = re.compile(rf"^\s*\)?\s*{_CODE}(?!\w)", re.IGNORECASE)


class DirectionCue(Enum):
    """Which signal decided the direction."""
    LAYOUT = "layout"
    KEYWORD = "keyword"
    DEFAULT = "default"


@dataclass(frozen=True)
class DirectionDecision:
    direction: Direction
    cue: DirectionCue


def code_to_direction(code: str) -> Direction | None:
    code = code.lower().rstrip(".")
    if code in DEBIT_CODES:
        return Direction.EXPENSE
    if code in CREDIT_CODES:
        return Direction.INCOME
    return None


class DirectionClassifier:
    """Combines layout and keyword cues into a direction."""

    CODE_WINDOW = 8

    def __init__(
        self,
        income_keywords: tuple[str, ...] | list[str] = DEFAULT_INCOME_KEYWORDS,
        expense_keywords: tuple[str, ...] | list[str] = DEFAULT_EXPENSE_KEYWORDS
    ):
        """Initialize the classifier.

        Args:
            income_keywords: Phrases that mark incoming money
            expense_keywords: Phrases that mark outgoing money
        """
        self._keyword_patterns: list[tuple[re.Pattern, str, Direction]] = []
        for keyword in income_keywords:
            self._keyword_patterns.append(
                (self._compile_keyword(keyword), keyword, Direction.INCOME)
            )
        for keyword in expense_keywords:
            self._keyword_patterns.append(
                (self._compile_keyword(keyword), keyword, Direction.EXPENSE)
            )

    @staticmethod
    def _compile_keyword(keyword: str) -> re.Pattern:
        words = [re.escape(w) for w in keyword.lower().split()]
        return re.compile(r"(?<!\w)" + r"\s+".join(words) + r"(?!\w)", re.IGNORECASE)

    def code_near(self, line: str, start: int, end: int) -> Direction | None:
        """Find a debit/credit code adjacent to the amount at line[start:end].

        Args:
            line: Text line
            start: Start offset of the amount (or amount pair)
            end: End offset of the amount (or amount pair)

        Returns:
            Direction implied by the code, or None if no code is adjacent
        """
        before = line[max(0, start - self.CODE_WINDOW):start]
        match = _CODE_BEFORE_RE.search(before)
        if not match:
            match = _CODE_AFTER_RE.match(line[end:end + self.CODE_WINDOW])
        if match:
            return code_to_direction(match.group("code"))
        return None

    def keyword_cue(self, text: str) -> Direction | None:
        """Direction from keyword cues; the earliest (then longest) match wins."""
        if not text:
            return None

        best: tuple[int, int, Direction] | None = None
        for pattern, keyword, direction in self._keyword_patterns:
            match = pattern.search(text)
            if not match:
                continue
            candidate = (match.start(), -len(keyword), direction)
            if best is None or candidate[:2] < best[:2]:
                best = candidate

        return best[2] if best else None

    def classify(
        self,
        text: str,
        layout_direction: Direction | None = None
    ) -> DirectionDecision:
        """Decide the direction of an entry.

        Args:
            text: Full entry text (all lines of a wrapped entry)
            layout_direction: Direction implied by a layout cue, if any

        Returns:
            DirectionDecision naming the cue that decided
        """
        # Layout cues always win over keywords
        if layout_direction is not None:
            return DirectionDecision(layout_direction, DirectionCue.LAYOUT)

        keyword_direction = self.keyword_cue(text)
        if keyword_direction is not None:
            return DirectionDecision(keyword_direction, DirectionCue.KEYWORD)

        return DirectionDecision(Direction.EXPENSE, DirectionCue.DEFAULT)
