"""
Currency & Amount Resolver Module

Extracts monetary tokens from statement lines, picks the transaction amount
among several candidates and converts BGN amounts to EUR.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Sequence

from .direction import DirectionClassifier
from .models import Direction, quantize_amount

logger = logging.getLogger(__name__)

# Fixed currency-board peg, BGN per EUR
PEG_RATE = Decimal("1.95583")

# Plausible BGN/EUR ratio band for rates inferred from the text
RATE_BAND = (Decimal("1.7"), Decimal("2.3"))


class Currency(Enum):
    EUR = "EUR"
    BGN = "BGN"


CURRENCY_MARKERS = {
    "€": Currency.EUR,
    "eur": Currency.EUR,
    "евро": Currency.EUR,
    "bgn": Currency.BGN,
    "лв": Currency.BGN,
    "лв.": Currency.BGN,
    "лева": Currency.BGN,
}

_NUMBER = (
    r"(?:\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?"
    r"|\d{1,3}(?:\.\d{3})+(?:,\d{1,2})?"
    r"|\d{1,3}(?: \d{3})+(?:[.,]\d{1,2})?"
    r"|\d+(?:[.,]\d{1,2})?)"
    r"(?![.,]?\d)"
)
_BARE_NUMBER = (
    r"(?:\d{1,3}(?:,\d{3})+\.\d{2}"
    r"|\d{1,3}(?:\.\d{3})+,\d{2}"
    r"|\d{1,3}(?: \d{3})+[.,]\d{2}"
    r"|\d+[.,]\d{2})"
    r"(?![.,]?\d)"
)

_TOKEN_RE = re.compile(
    rf"(?<![\w.,])(?P<pre_sign>[-−+])?(?P<pre_cur>€|(?<![A-Za-z])(?:EUR|BGN)(?![A-Za-z]))"
    rf"\s?(?P<pre_num>{_NUMBER})"
    rf"|(?<![\w.,])(?P<suf_sign>[-−+])?(?P<suf_num>{_NUMBER})"
    rf"\s?(?P<suf_cur>€|EUR|BGN|лв\.?|лева|евро)(?![A-Za-zА-Яа-я])",
    re.IGNORECASE,
)
_BARE_RE = re.compile(rf"(?<![\w.,:/])(?P<sign>[-−+])?(?P<num>{_BARE_NUMBER})")
_PAREN_BARE_RE = re.compile(rf"^\s*\(\s*(?P<num>{_BARE_NUMBER})\s*\)")
_PAIR_GAP_RE = re.compile(r"^\s*\(\s*$")

_STATED_RATE_PATTERNS = [
    re.compile(
        r"1\s*(?:EUR|€|евро)\s*=\s*(?P<rate>\d+[.,]\d+)\s*(?:BGN|лв\.?|лева)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?<!\w)(?:exchange\s+rate|rate|курс)\s*(?:EUR\s*/\s*BGN|BGN\s*/\s*EUR)?\s*[:\-]?\s*"
        r"(?P<rate>\d[.,]\d{2,5})(?!\d)",
        re.IGNORECASE,
    ),
]


def parse_decimal(number: str) -> Decimal:
    """Parse a number written with any common grouping/decimal convention.

    Args:
        number: Digits with optional "," / "." / space separators

    Returns:
        Unsigned Decimal value

    Raises:
        ValueError: If the string is not a number
    """
    s = number.replace(" ", "").replace("\u00a0", "")

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        tail = s.rpartition(",")[2]
        if s.count(",") > 1 or len(tail) == 3:
            s = s.replace(",", "")
        else:
            s = s.replace(",", ".")
    elif "." in s:
        tail = s.rpartition(".")[2]
        if s.count(".") > 1 or len(tail) == 3:
            s = s.replace(".", "")

    try:
        return Decimal(s)
    except InvalidOperation:
        raise ValueError(f"Cannot parse number: {number}")


def parse_amount(amount_str: str) -> Decimal:
    """Parse a signed amount string.

    Handles currency markers, parentheses negatives, leading or trailing
    minus signs and comma decimals.

    Args:
        amount_str: Amount string

    Returns:
        Signed Decimal amount

    Raises:
        ValueError: If no number is present
    """
    if amount_str is None or not str(amount_str).strip():
        raise ValueError("Empty amount")

    cleaned = str(amount_str).strip().replace("−", "-")

    is_negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
        is_negative = True

    match = re.search(r"\d[\d\s.,]*", cleaned)
    if not match:
        raise ValueError(f"Cannot parse amount: {amount_str}")

    before = cleaned[:match.start()]
    after = cleaned[match.end():]
    if "-" in before or after.strip().startswith("-"):
        is_negative = True

    amount = parse_decimal(match.group(0).strip().rstrip(".,"))
    return -amount if is_negative else amount


def currency_from_marker(marker: str) -> Currency | None:
    return CURRENCY_MARKERS.get(marker.strip().lower())


@dataclass(frozen=True)
class MonetaryToken:
    """A money amount found in a line, with its position."""

    value: Decimal
    currency: Currency
    start: int
    end: int
    raw: str
    parenthesized: bool = False
    marked: bool = True

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    @property
    def sign_direction(self) -> Direction | None:
        """Direction implied by an explicit sign on the token."""
        if self.raw.lstrip("(").startswith(("-", "−")):
            return Direction.EXPENSE
        if self.raw.lstrip("(").startswith("+"):
            return Direction.INCOME
        return None


def _is_parenthesized(line: str, start: int, end: int) -> bool:
    before = line[:start].rstrip()
    after = line[end:].lstrip()
    return before.endswith("(") and after.startswith(")")


def extract_monetary_tokens(
    line: str,
    bare_currency: Currency | None = None
) -> list[MonetaryToken]:
    """Extract every monetary token from a line, in order of appearance.

    Args:
        line: Text line
        bare_currency: Currency assumed for unmarked 2-decimal numbers; when
            None, unmarked numbers are not money

    Returns:
        List of MonetaryToken sorted by position
    """
    tokens: list[MonetaryToken] = []
    if not line:
        return tokens

    for match in _TOKEN_RE.finditer(line):
        if match.group("pre_num") is not None:
            number, marker = match.group("pre_num"), match.group("pre_cur")
            sign = match.group("pre_sign")
        else:
            number, marker = match.group("suf_num"), match.group("suf_cur")
            sign = match.group("suf_sign")

        currency = currency_from_marker(marker)
        try:
            value = parse_decimal(number)
        except ValueError:
            continue
        if sign in ("-", "−"):
            value = -value

        tokens.append(MonetaryToken(
            value=value,
            currency=currency,
            start=match.start(),
            end=match.end(),
            raw=match.group(0),
            parenthesized=_is_parenthesized(line, match.start(), match.end()),
        ))

    tokens.extend(_infer_parenthesized_eur(line, tokens))

    if bare_currency is not None:
        occupied = [(t.start, t.end) for t in tokens]
        for match in _BARE_RE.finditer(line):
            if any(s < match.end() and match.start() < e for s, e in occupied):
                continue
            value = parse_decimal(match.group("num"))
            if match.group("sign") in ("-", "−"):
                value = -value
            tokens.append(MonetaryToken(
                value=value,
                currency=bare_currency,
                start=match.start(),
                end=match.end(),
                raw=match.group(0),
                parenthesized=_is_parenthesized(line, match.start(), match.end()),
                marked=False,
            ))

    tokens.sort(key=lambda t: t.start)
    return tokens


def _infer_parenthesized_eur(line: str, tokens: list[MonetaryToken]) -> list[MonetaryToken]:
    """Treat "19.17 BGN (9.80)" as a BGN/EUR pair when the ratio fits the peg."""
    inferred = []
    for token in tokens:
        if token.currency is not Currency.BGN or token.is_zero:
            continue
        match = _PAREN_BARE_RE.match(line[token.end:])
        if not match:
            continue
        eur_value = parse_decimal(match.group("num"))
        if eur_value == 0:
            continue
        ratio = abs(token.value) / eur_value
        if RATE_BAND[0] < ratio < RATE_BAND[1]:
            start = token.end + match.start("num")
            inferred.append(MonetaryToken(
                value=eur_value,
                currency=Currency.EUR,
                start=start,
                end=start + len(match.group("num")),
                raw=match.group("num"),
                parenthesized=True,
                marked=False,
            ))
    return inferred


def find_currency_pairs(
    line: str,
    tokens: Sequence[MonetaryToken]
) -> list[tuple[MonetaryToken, MonetaryToken]]:
    """Find "X BGN (Y EUR)" style pairs (either currency first).

    Args:
        line: Text line the tokens came from
        tokens: Tokens of the line, sorted by position

    Returns:
        List of (outer, parenthesized) token pairs
    """
    pairs = []
    for first, second in zip(tokens, tokens[1:]):
        if not second.parenthesized or first.parenthesized:
            continue
        if first.currency is second.currency:
            continue
        if _PAIR_GAP_RE.match(line[first.end:second.start]):
            pairs.append((first, second))
    return pairs


@dataclass(frozen=True)
class ExchangeContext:
    """BGN-per-EUR rate used for every conversion within one document."""

    rate: Decimal = PEG_RATE
    source: str = "peg"  # 'stated', 'pair' or 'peg'

    def to_eur(self, value: Decimal, currency: Currency) -> Decimal:
        """Convert an amount to EUR, rounded to 2 places."""
        if currency is Currency.BGN:
            return quantize_amount(value / self.rate)
        return quantize_amount(value)

    @classmethod
    def from_text(cls, text: str, fallback: Decimal = PEG_RATE) -> "ExchangeContext":
        """Determine the exchange rate for a document.

        A rate written in the text wins, then a rate derived from a same-line
        "X BGN (Y EUR)" pair, then the fallback constant.

        Args:
            text: Full document text
            fallback: Rate to use when the text states none

        Returns:
            ExchangeContext
        """
        for pattern in _STATED_RATE_PATTERNS:
            for match in pattern.finditer(text or ""):
                try:
                    rate = parse_decimal(match.group("rate"))
                except ValueError:
                    continue
                if 0 < rate < 1:
                    rate = 1 / rate
                if RATE_BAND[0] < rate < RATE_BAND[1]:
                    return cls(rate=rate.quantize(Decimal("0.00001")), source="stated")

        best: tuple[Decimal, Decimal] | None = None
        for line in (text or "").splitlines():
            tokens = extract_monetary_tokens(line)
            for first, second in find_currency_pairs(line, tokens):
                bgn, eur = (first, second) if first.currency is Currency.BGN else (second, first)
                if eur.is_zero:
                    continue
                ratio = abs(bgn.value) / abs(eur.value)
                if not RATE_BAND[0] < ratio < RATE_BAND[1]:
                    continue
                # Larger amounts give a more precise ratio
                if best is None or abs(eur.value) > best[0]:
                    best = (abs(eur.value), ratio)

        if best is not None:
            return cls(rate=best[1].quantize(Decimal("0.00001")), source="pair")

        return cls(rate=Decimal(fallback), source="peg")


class ColumnRole(Enum):
    """Meaning of a money column in a statement table."""
    OUT = "out"
    IN = "in"
    BALANCE = "balance"
    AMOUNT = "amount"


class AmountPolicy(Enum):
    """Named tie-break policies for picking the transaction amount."""
    CURRENCY_PAIR = "currency_pair"
    COLUMN_SPLIT = "column_split"
    COLUMN_KEYWORD = "column_keyword"
    COLUMN_TIE_DEFAULT_EXPENSE = "column_tie_default_expense"
    DIRECTION_CODE = "direction_code"
    SINGLE_TOKEN = "single_token"
    FIRST_TOKEN = "first_token"


@dataclass(frozen=True)
class AmountResolution:
    """The authoritative amount of a line and how it was chosen."""

    token: MonetaryToken
    amount: Decimal
    policy: AmountPolicy
    layout_direction: Direction | None = None
    tokens: tuple[MonetaryToken, ...] = field(default=(), repr=False)


_INLINE_LABELS = [
    (ColumnRole.OUT, re.compile(
        r"(?:money\s+out|paid\s+out|debit|дебит|(?<!\w)out\s*:)\s*[:\-]?\s*$", re.IGNORECASE)),
    (ColumnRole.IN, re.compile(
        r"(?:money\s+in|paid\s+in|credit|кредит|(?<!\w)in\s*:)\s*[:\-]?\s*$", re.IGNORECASE)),
    (ColumnRole.BALANCE, re.compile(
        r"(?:balance|баланс|салдо)\s*[:\-]?\s*$", re.IGNORECASE)),
]


class AmountResolver:
    """Picks the transaction amount among the monetary tokens of a line."""

    def __init__(
        self,
        context: ExchangeContext | None = None,
        classifier: DirectionClassifier | None = None,
        bare_currency: Currency | None = None
    ):
        """Initialize the resolver.

        Args:
            context: Exchange context of the document
            classifier: Classifier used to spot debit/credit codes
            bare_currency: Currency assumed for unmarked amounts
        """
        self.context = context or ExchangeContext()
        self.classifier = classifier or DirectionClassifier()
        self.bare_currency = bare_currency

    def resolve(
        self,
        line: str,
        columns: Sequence[ColumnRole] | None = None,
        keyword_direction: Direction | None = None
    ) -> AmountResolution | None:
        """Resolve the authoritative amount of a line.

        Args:
            line: Text line holding the amount
            columns: Money column roles from the table header, left to right
            keyword_direction: Direction suggested by keywords of the entry

        Returns:
            AmountResolution, or None if the line holds no usable amount
        """
        tokens = extract_monetary_tokens(line, self.bare_currency)
        if not tokens:
            return None

        # 1. Currency pair: the EUR member is authoritative
        pairs = find_currency_pairs(line, tokens)
        if pairs:
            chosen, direction = pairs[0], None
            for pair in pairs:
                code = self.classifier.code_near(line, pair[0].start, self._pair_end(line, pair))
                if code is not None:
                    chosen, direction = pair, code
                    break
            eur = chosen[0] if chosen[0].currency is Currency.EUR else chosen[1]
            if direction is None:
                direction = chosen[0].sign_direction or eur.sign_direction
            return self._build(eur, AmountPolicy.CURRENCY_PAIR, direction, tokens)

        # Members of a pair are gone; parenthesized leftovers are annotations
        candidates = [t for t in tokens if not t.parenthesized] or tokens

        # 2. Labeled columns
        roles = self._assign_roles(line, candidates, columns)
        if roles:
            resolution = self._resolve_columns(roles, keyword_direction, tokens)
            if resolution is not None or any(
                r in (ColumnRole.OUT, ColumnRole.IN) for _, r in roles
            ):
                return resolution
            candidates = [t for t, r in roles if r is not ColumnRole.BALANCE]

        # 3. Token adjacent to a debit/credit code
        for token in candidates:
            code = self.classifier.code_near(line, token.start, token.end)
            if code is not None and not token.is_zero:
                return self._build(token, AmountPolicy.DIRECTION_CODE, code, tokens)

        # 4./5. Single token, or the left-most one
        non_zero = [t for t in candidates if not t.is_zero]
        if not non_zero:
            return None
        policy = AmountPolicy.SINGLE_TOKEN if len(non_zero) == 1 else AmountPolicy.FIRST_TOKEN
        token = non_zero[0]
        return self._build(token, policy, token.sign_direction, tokens)

    def _pair_end(self, line: str, pair: tuple[MonetaryToken, MonetaryToken]) -> int:
        end = pair[1].end
        closing = line.find(")", end)
        if closing != -1 and not line[end:closing].strip():
            return closing + 1
        return end

    def _assign_roles(
        self,
        line: str,
        tokens: list[MonetaryToken],
        columns: Sequence[ColumnRole] | None
    ) -> list[tuple[MonetaryToken, ColumnRole]] | None:
        """Associate tokens with money columns.

        Inline labels ("Money out: €5.00") take precedence; otherwise tokens
        are matched to the header columns by position.
        """
        labeled: list[tuple[MonetaryToken, ColumnRole]] = []
        previous_end = 0
        found_label = False
        for token in tokens:
            gap = line[previous_end:token.start]
            role = ColumnRole.AMOUNT
            for candidate_role, pattern in _INLINE_LABELS:
                if pattern.search(gap):
                    role = candidate_role
                    found_label = True
                    break
            labeled.append((token, role))
            previous_end = token.end
        if found_label:
            return labeled

        if not columns:
            return None

        columns = list(columns)
        if len(tokens) == len(columns):
            return list(zip(tokens, columns))

        if columns[-1] is ColumnRole.BALANCE and 2 <= len(tokens) < len(columns):
            # Empty money columns vanish from extracted text; only the
            # trailing balance keeps its place
            return [(t, ColumnRole.AMOUNT) for t in tokens[:-1]] + [
                (tokens[-1], ColumnRole.BALANCE)
            ]

        return None

    def _resolve_columns(
        self,
        roles: list[tuple[MonetaryToken, ColumnRole]],
        keyword_direction: Direction | None,
        tokens: list[MonetaryToken]
    ) -> AmountResolution | None:
        out_token = next((t for t, r in roles if r is ColumnRole.OUT), None)
        in_token = next((t for t, r in roles if r is ColumnRole.IN), None)
        if out_token is None and in_token is None:
            return None

        out_set = out_token is not None and not out_token.is_zero
        in_set = in_token is not None and not in_token.is_zero

        if out_set and not in_set:
            return self._build(out_token, AmountPolicy.COLUMN_SPLIT, Direction.EXPENSE, tokens)
        if in_set and not out_set:
            return self._build(in_token, AmountPolicy.COLUMN_SPLIT, Direction.INCOME, tokens)
        if not out_set and not in_set:
            return None

        if keyword_direction is Direction.INCOME:
            return self._build(in_token, AmountPolicy.COLUMN_KEYWORD, Direction.INCOME, tokens)
        if keyword_direction is Direction.EXPENSE:
            return self._build(out_token, AmountPolicy.COLUMN_KEYWORD, Direction.EXPENSE, tokens)

        # Both columns filled and no keyword: left column, expense
        first = min(out_token, in_token, key=lambda t: t.start)
        return self._build(
            first, AmountPolicy.COLUMN_TIE_DEFAULT_EXPENSE, Direction.EXPENSE, tokens
        )

    def _build(
        self,
        token: MonetaryToken,
        policy: AmountPolicy,
        direction: Direction | None,
        tokens: list[MonetaryToken]
    ) -> AmountResolution | None:
        amount = self.context.to_eur(abs(token.value), token.currency)
        if amount <= 0:
            return None
        return AmountResolution(
            token=token,
            amount=amount,
            policy=policy,
            layout_direction=direction,
            tokens=tuple(tokens),
        )
