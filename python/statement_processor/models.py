"""
Statement Models

Shared types produced by every statement parser: the normalized transaction
draft, its deduplication key and the per-document parse result.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, NamedTuple

TWO_PLACES = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Round a Decimal to 2 places using standard (half-up) rounding."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class Direction(Enum):
    """Money flow direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class StatementLayout(Enum):
    """Document layouts the engine knows how to read."""
    TABULAR_CSV = "tabular"
    FOREIGN_CURRENCY = "foreign_currency"  # Layout A
    LOCAL_LEDGER = "local_ledger"  # Layout B


class CompositeKey(NamedTuple):
    """Deduplication key: date + rounded amount + description prefix."""

    date: date
    amount: Decimal
    description_prefix: str


def normalize_key_text(text: str, length: int = 30) -> str:
    """Case-fold and collapse whitespace, then cut to the key prefix length."""
    return " ".join((text or "").casefold().split())[:length]


@dataclass
class TransactionDraft:
    """An unpersisted, normalized transaction."""

    date: date
    description: str
    amount: Decimal
    direction: Direction
    source: str = ""
    raw_text: str = field(default="", compare=False, repr=False)

    def __post_init__(self):
        if isinstance(self.date, datetime):
            self.date = self.date.date()
        if not isinstance(self.amount, Decimal):
            self.amount = Decimal(str(self.amount))
        self.amount = quantize_amount(self.amount)
        if self.amount <= 0:
            raise ValueError(f"Draft amount must be positive, got {self.amount}")
        self.description = (self.description or "").strip()
        if not self.description:
            raise ValueError("Draft description must not be empty")
        if not isinstance(self.direction, Direction):
            self.direction = Direction(self.direction)

    @property
    def is_income(self) -> bool:
        return self.direction is Direction.INCOME

    @property
    def signed_amount(self) -> Decimal:
        """Amount with sign: positive for income, negative for expense."""
        return self.amount if self.is_income else -self.amount

    @property
    def merchant(self) -> str | None:
        from .sanitizer import extract_merchant_name

        return extract_merchant_name(self.description)

    def composite_key(self, prefix_length: int = 30) -> CompositeKey:
        """Build the deduplication key for this draft."""
        return CompositeKey(
            date=self.date,
            amount=quantize_amount(self.amount),
            description_prefix=normalize_key_text(self.description, prefix_length),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
            "type": self.direction.value,
            "merchant": self.merchant,
            "source": self.source,
        }


@dataclass
class ParseResult:
    """Result of parsing one statement document."""

    layout: StatementLayout
    transactions: list[TransactionDraft] = field(default_factory=list)
    exchange_rate: Decimal | None = None
    rate_source: str | None = None
    candidate_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    truncated: bool = False
    summary: dict = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def total_income(self) -> Decimal:
        return sum(
            (t.amount for t in self.transactions if t.is_income), Decimal("0")
        )

    @property
    def total_expense(self) -> Decimal:
        return sum(
            (t.amount for t in self.transactions if not t.is_income), Decimal("0")
        )

    @property
    def count_consistent(self) -> bool:
        """Every candidate entry is accounted for as emitted, skipped or duplicate."""
        accounted = self.transaction_count + self.skipped_count + self.duplicate_count
        return accounted == self.candidate_count

    def build_summary(self) -> dict:
        self.summary = {
            "layout": self.layout.value,
            "total_transactions": self.transaction_count,
            "total_income": float(self.total_income),
            "total_expense": float(self.total_expense),
            "net_amount": float(self.total_income - self.total_expense),
            "candidates": self.candidate_count,
            "skipped": self.skipped_count,
            "duplicates": self.duplicate_count,
            "count_consistent": self.count_consistent,
            "exchange_rate": float(self.exchange_rate) if self.exchange_rate else None,
            "rate_source": self.rate_source,
            "truncated": self.truncated,
        }
        return self.summary

    def to_dict(self) -> dict:
        return {
            "summary": self.build_summary(),
            "transactions": [t.to_dict() for t in self.transactions],
            "warnings": self.warnings,
            "errors": self.errors,
        }
