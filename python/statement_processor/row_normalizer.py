"""
Row Normalizer Module

Maps a tabular statement row with arbitrary column names onto a normalized
{date, amount, description, type} record.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from .currency import Currency, ExchangeContext, currency_from_marker, parse_amount
from .models import Direction, TransactionDraft
from .sanitizer import sanitize_description

logger = logging.getLogger(__name__)

# Header names per field, matched case-insensitively after trimming
COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "date": (
        "date", "transaction_date", "transaction date", "transactiondate",
        "booking date", "value date", "completed date", "started date",
        "дата", "дата на транзакция", "дата на операция", "дата на плащане",
        "вальор",
    ),
    "amount": (
        "amount", "сума", "price", "цена", "value", "стойност", "сума лв",
        "amount bgn", "сума bgn", "amount eur", "сума eur", "сума евро",
        "amount (eur)", "amount (bgn)", "total", "общо",
    ),
    "debit": (
        "debit", "дебит", "money out", "paid out", "withdrawal", "withdrawals",
        "out", "дт", "разход",
    ),
    "credit": (
        "credit", "кредит", "money in", "paid in", "deposit", "deposits",
        "in", "кт", "приход",
    ),
    "description": (
        "description", "описание", "details", "детайли", "merchant",
        "merchant name", "name", "име", "transaction", "транзакция",
        "details of transaction", "описание на транзакция", "beneficiary",
        "получател", "payer", "платец", "narrative", "основание",
        "основание за плащане", "reference", "контрагент",
    ),
    "type": (
        "type", "тип", "transaction_type", "transaction type", "direction",
        "вид", "вид операция", "дт/кт", "d/c", "dr/cr",
    ),
    "currency": (
        "currency", "валута", "ccy",
    ),
}

INCOME_TYPE_VALUES = {
    "income", "приход", "credit", "кредит", "кт", "kt", "cr", "in", "+", "c",
}
EXPENSE_TYPE_VALUES = {
    "expense", "разход", "debit", "дебит", "дт", "dt", "dr", "out", "-", "d",
}

# Day-first formats, as used by European bank exports
DATE_FORMATS = [
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%y",
    "%d/%m/%y",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d/%m/%Y %H:%M",
    "%b %d, %Y",
    "%d %b %Y",
    "%d-%b-%Y",
]

_DATE_VALUE_RE = re.compile(
    r"^(?:\d{1,2}[./-]\d{1,2}[./-]\d{2,4}|\d{4}[-/]\d{2}[-/]\d{2})"
    r"(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?(?:\s*г\.?)?$"
)
_AMOUNT_VALUE_RE = re.compile(
    r"^\(?[+\-−]?\s*(?:€|EUR|BGN)?\s*[+\-−]?\s*\d[\d\s.,]*[.,]\d{2}\s*"
    r"(?:€|EUR|BGN|лв\.?|лева)?\s*-?\)?$",
    re.IGNORECASE,
)
_INTEGER_VALUE_RE = re.compile(
    r"^\(?[+\-−]?\s*(?:€|EUR|BGN)?\s*[+\-−]?\s*\d+(?:[\s.,]\d{3})*\s*"
    r"(?:€|EUR|BGN|лв\.?|лева)?\s*-?\)?$",
    re.IGNORECASE,
)
_NUMERIC_VALUE_RE = re.compile(r"^[\d\s.,+\-−()€$]*$")
# Running balance columns are never the movement amount
_BALANCE_HEADER_RE = re.compile(r"balance|баланс|салдо|наличност", re.IGNORECASE)
_HEADER_CURRENCY_RE = [
    (Currency.BGN, re.compile(r"(?<![a-zа-я])(?:bgn|лв|лева)(?![a-zа-я])", re.IGNORECASE)),
    (Currency.EUR, re.compile(r"€|(?<![a-zа-я])(?:eur|евро)(?![a-zа-я])", re.IGNORECASE)),
]


def parse_date(value: str) -> date | None:
    """Parse a date string, trying day-first formats.

    Args:
        value: Date string

    Returns:
        Parsed date or None
    """
    if not value:
        return None

    value = re.sub(r"\s*г\.?$", "", str(value).strip())
    value = re.sub(r"(?<=\d)T(?=\d)", " ", value)
    value = re.sub(r"(?<=:\d{2})(?:\.\d+)?(?:Z|[+\-]\d{2}:?\d{2})$", "", value)

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    return None


def direction_from_type(value: str) -> Direction | None:
    """Map an explicit type column value to a direction."""
    value = (value or "").strip().lower().rstrip(".")
    if value in INCOME_TYPE_VALUES:
        return Direction.INCOME
    if value in EXPENSE_TYPE_VALUES:
        return Direction.EXPENSE
    return None


def _header_key(name: Any) -> str:
    return " ".join(str(name).strip().lower().split())


def _currency_in(text: str) -> Currency | None:
    for currency, pattern in _HEADER_CURRENCY_RE:
        if pattern.search(text or ""):
            return currency
    return None


@dataclass
class NormalizedRow:
    """A tabular row mapped onto the common fields.

    The amount is signed: positive for income, negative for expense.
    """

    date: date
    amount: Decimal
    description: str
    direction: Direction
    currency: Currency = Currency.EUR
    raw_data: dict | None = None


class RowNormalizer:
    """Locates date, amount, description and type in arbitrary rows."""

    def __init__(self, synonyms: Mapping[str, tuple[str, ...]] | None = None):
        """Initialize the normalizer.

        Args:
            synonyms: Header names per field; defaults to COLUMN_SYNONYMS
        """
        self.synonyms = {
            name: tuple(_header_key(v) for v in values)
            for name, values in (synonyms or COLUMN_SYNONYMS).items()
        }

    def _find_column(self, headers: dict[str, str], values: dict[str, str], name: str) -> str | None:
        for synonym in self.synonyms.get(name, ()):
            key = headers.get(synonym)
            if key is not None and values.get(key):
                return key
        return None

    def _has_header(self, headers: dict[str, str], *names: str) -> bool:
        return any(
            synonym in headers
            for name in names
            for synonym in self.synonyms.get(name, ())
        )

    def _sniff_amount(self, values: dict[str, str], used: set[str]) -> str | None:
        """Find the amount column by content, preferring decimal values."""
        candidates = [
            k for k, v in values.items()
            if k not in used and v and not _BALANCE_HEADER_RE.search(_header_key(k))
        ]
        for pattern in (_AMOUNT_VALUE_RE, _INTEGER_VALUE_RE):
            key = next((k for k in candidates if pattern.match(values[k])), None)
            if key is not None:
                return key
        return None

    def normalize(self, row: Mapping[Any, Any]) -> NormalizedRow | None:
        """Normalize a row.

        Args:
            row: Dictionary of column name -> value

        Returns:
            NormalizedRow, or None if the row is not a transaction
        """
        values: dict[str, str] = {}
        for key, value in row.items():
            # csv.DictReader files surplus fields under a None key
            if key is None or value is None or isinstance(value, list):
                continue
            values[str(key)] = str(value).strip()

        if sum(1 for v in values.values() if v) < 2:
            return None

        headers = {_header_key(k): k for k in values}

        date_key = self._find_column(headers, values, "date")
        amount_key = self._find_column(headers, values, "amount")
        debit_key = self._find_column(headers, values, "debit")
        credit_key = self._find_column(headers, values, "credit")
        description_key = self._find_column(headers, values, "description")
        type_key = self._find_column(headers, values, "type")
        currency_key = self._find_column(headers, values, "currency")

        used = {k for k in (
            date_key, amount_key, debit_key, credit_key,
            description_key, type_key, currency_key,
        ) if k}

        if date_key is None:
            date_key = next(
                (k for k, v in values.items() if k not in used and _DATE_VALUE_RE.match(v)),
                None,
            )
            if date_key:
                used.add(date_key)

        # A named amount column that is empty leaves the row without an amount
        if not self._has_header(headers, "amount", "debit", "credit"):
            amount_key = self._sniff_amount(values, used)
            if amount_key:
                used.add(amount_key)

        if description_key is None:
            remaining = [
                k for k, v in values.items()
                if k not in used and v and not _NUMERIC_VALUE_RE.match(v)
                and not _DATE_VALUE_RE.match(v)
            ]
            if remaining:
                description_key = max(remaining, key=lambda k: len(values[k]))

        if date_key is None:
            logger.debug(f"Row skipped, no date: {values}")
            return None

        row_date = parse_date(values[date_key])
        if row_date is None:
            logger.debug(f"Row skipped, unparseable date: {values[date_key]!r}")
            return None

        explicit = direction_from_type(values.get(type_key, "")) if type_key else None

        try:
            amount, amount_text, amount_header = self._row_amount(
                values, amount_key, debit_key, credit_key, explicit
            )
        except ValueError as e:
            logger.debug(f"Row skipped, bad amount: {e}")
            return None

        if amount is None or amount == 0:
            return None

        # Explicit type wins over the literal sign
        if explicit is Direction.INCOME:
            amount = abs(amount)
        elif explicit is Direction.EXPENSE:
            amount = -abs(amount)

        currency = (
            _currency_in(amount_header)
            or _currency_in(amount_text)
            or (currency_from_marker(values[currency_key]) if currency_key else None)
            or Currency.EUR
        )

        return NormalizedRow(
            date=row_date,
            amount=amount,
            description=values.get(description_key, "") if description_key else "",
            direction=Direction.INCOME if amount > 0 else Direction.EXPENSE,
            currency=currency,
            raw_data=dict(values),
        )

    def _row_amount(
        self,
        values: dict[str, str],
        amount_key: str | None,
        debit_key: str | None,
        credit_key: str | None,
        explicit: Direction | None = None
    ) -> tuple[Decimal | None, str, str]:
        """Signed amount from a single amount column or debit/credit columns.

        When both debit and credit hold a value, the explicit type picks the
        column; without one the debit is taken and the row is an expense.
        """
        if amount_key:
            return parse_amount(values[amount_key]), values[amount_key], amount_key

        debit = abs(parse_amount(values[debit_key])) if debit_key else Decimal("0")
        credit = abs(parse_amount(values[credit_key])) if credit_key else Decimal("0")

        if debit and not credit:
            return -debit, values[debit_key], debit_key
        if credit and not debit:
            return credit, values[credit_key], credit_key
        if debit and credit:
            if explicit is Direction.INCOME:
                return credit, values[credit_key], credit_key
            return -debit, values[debit_key], debit_key
        return None, "", ""

    def to_draft(
        self,
        row: NormalizedRow,
        context: ExchangeContext | None = None,
        max_length: int = 200
    ) -> TransactionDraft:
        """Convert a normalized row into a transaction draft.

        Args:
            row: Normalized row
            context: Exchange context for BGN amounts
            max_length: Maximum description length

        Returns:
            TransactionDraft in EUR
        """
        context = context or ExchangeContext()
        return TransactionDraft(
            date=row.date,
            description=sanitize_description(row.description, row.direction, max_length),
            amount=context.to_eur(abs(row.amount), row.currency),
            direction=row.direction,
            source="tabular",
            raw_text=" | ".join(v for v in (row.raw_data or {}).values() if v),
        )
