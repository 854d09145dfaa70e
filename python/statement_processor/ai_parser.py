"""
Model-Assisted Statement Parser

Asks Claude to list the transactions of a statement and validates the reply
into transaction drafts, so it can be merged with the heuristic output.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import anthropic

from .models import Direction, TransactionDraft
from .sanitizer import sanitize_description

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 20000
MAX_AMOUNT = Decimal("1000000")

TYPE_ALIASES = {
    "income": Direction.INCOME,
    "in": Direction.INCOME,
    "expense": Direction.EXPENSE,
    "out": Direction.EXPENSE,
}

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LOCAL_DATE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")


def extract_json_array(text: str) -> Any:
    """Pull a JSON array out of a model reply.

    Args:
        text: Raw reply, possibly wrapped in prose or markdown fences

    Returns:
        Parsed JSON value, or None if nothing parses
    """
    if not text:
        return None

    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            pass

    cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return None


@dataclass
class ModelExtractionResult:
    """Result of a model-assisted extraction."""

    transactions: list[TransactionDraft] = field(default_factory=list)
    rejected_count: int = 0
    raw_response: dict | None = None
    errors: list[str] = field(default_factory=list)


class ModelAssistedParser:
    """Alternate parser backed by the Claude API."""

    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

    EXTRACTION_PROMPT = """You are an expert bank statement parser. Extract ALL transactions from the statement text below.

Return ONLY a valid JSON array (no markdown, no explanations).

Each transaction must have EXACT keys:
- date: string in YYYY-MM-DD format (preferred) or DD.MM.YYYY
- description: string (merchant name or transaction reason), max 200 chars
- amount: number (POSITIVE value, no sign)
- type: "income" or "expense"

RULES:
1. "Дт" (debit) means expense, "Кт" (credit) means income
2. "Money in", "Transfer from", "Deposit", "Refund" = income
3. "Money out", "Transfer to", "Withdrawal", "Payment" = expense
4. Ignore balances, running totals and summary lines
5. If both BGN and EUR are present (e.g. "X BGN (Y EUR)"), always use the EUR amount
6. If a transaction spans multiple lines, combine them into one transaction

STATEMENT TEXT:
"""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: Any = None
    ):
        """Initialize the parser.

        Args:
            api_key: Anthropic API key (uses ANTHROPIC_API_KEY env var if not provided)
            model: Model to use for extraction
            client: Preconfigured client, mainly for tests
        """
        self.client = client or anthropic.Anthropic(api_key=api_key)
        self.model = model or self.DEFAULT_MODEL

    def parse(self, text: str) -> list[TransactionDraft]:
        """Extract drafts from statement text."""
        return self.extract(text).transactions

    def extract(self, text: str) -> ModelExtractionResult:
        """Ask the model for the transactions of a statement.

        Args:
            text: Extracted statement text

        Returns:
            ModelExtractionResult
        """
        result = ModelExtractionResult()
        if not text or not text.strip():
            return result

        clipped = text[:MAX_TEXT_LENGTH]

        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=4096,
                messages=[
                    {
                        "role": "user",
                        "content": self.EXTRACTION_PROMPT + clipped
                    }
                ]
            )

            response_text = message.content[0].text
            result = self.parse_response(response_text)
            result.raw_response = {
                "model": self.model,
                "usage": {
                    "input_tokens": message.usage.input_tokens,
                    "output_tokens": message.usage.output_tokens
                },
                "clipped": len(text) > MAX_TEXT_LENGTH
            }

        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            result.errors.append(f"API error: {e}")
        except Exception as e:
            logger.error(f"Extraction error: {e}")
            result.errors.append(f"Extraction error: {e}")

        return result

    def parse_response(self, response_text: str) -> ModelExtractionResult:
        """Validate a model reply into drafts.

        Args:
            response_text: Raw reply text

        Returns:
            ModelExtractionResult
        """
        result = ModelExtractionResult()

        items = extract_json_array(response_text)
        if not isinstance(items, list):
            result.errors.append("Reply is not a JSON array")
            return result

        for item in items:
            draft = self._parse_item(item)
            if draft is None:
                result.rejected_count += 1
                continue
            result.transactions.append(draft)

        if result.rejected_count:
            logger.debug(f"Rejected {result.rejected_count} model items")

        return result

    def _parse_item(self, item: Any) -> TransactionDraft | None:
        """Validate one reply item.

        Args:
            item: Transaction dictionary from the reply

        Returns:
            TransactionDraft or None
        """
        if not isinstance(item, dict):
            return None

        date_str = str(item.get("date") or "").strip()
        description = str(item.get("description") or "").strip()
        direction = TYPE_ALIASES.get(str(item.get("type") or "").strip().lower())

        if _ISO_DATE.match(date_str):
            date_format = "%Y-%m-%d"
        elif _LOCAL_DATE.match(date_str):
            date_format = "%d.%m.%Y"
        else:
            return None

        try:
            txn_date = datetime.strptime(date_str, date_format).date()
        except ValueError:
            return None

        if len(description) < 2 or direction is None:
            return None

        try:
            amount = Decimal(str(item.get("amount")))
        except (InvalidOperation, ValueError):
            return None
        if not amount.is_finite() or amount <= 0 or amount > MAX_AMOUNT:
            return None

        try:
            return TransactionDraft(
                date=txn_date,
                description=sanitize_description(description[:200], direction),
                amount=amount,
                direction=direction,
                source="model_assisted",
                raw_text=json.dumps(item, ensure_ascii=False, default=str),
            )
        except ValueError:
            # Amount rounds to zero
            return None
