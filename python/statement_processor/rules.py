"""
Statement Rules

Tunable parameters of the extraction engine, loaded from
config/statement_rules.yaml with in-code defaults.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

import yaml

from .currency import PEG_RATE
from .direction import DEFAULT_EXPENSE_KEYWORDS, DEFAULT_INCOME_KEYWORDS
from .row_normalizer import COLUMN_SYNONYMS

logger = logging.getLogger(__name__)

RULES_FILENAME = "statement_rules.yaml"


def _default_synonyms() -> dict[str, tuple[str, ...]]:
    return {name: tuple(values) for name, values in COLUMN_SYNONYMS.items()}


@dataclass(frozen=True)
class StatementRules:
    """Parameters shared by the detector, scanners and deduplicator."""

    fallback_exchange_rate: Decimal = PEG_RATE
    continuation_lookahead: int = 15
    min_text_length: int = 10
    description_max_length: int = 200
    dedup_prefix_length: int = 30
    max_candidates: int | None = None
    income_keywords: tuple[str, ...] = DEFAULT_INCOME_KEYWORDS
    expense_keywords: tuple[str, ...] = DEFAULT_EXPENSE_KEYWORDS
    column_synonyms: dict[str, tuple[str, ...]] = field(default_factory=_default_synonyms)

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> "StatementRules":
        """Load rules from the configuration directory.

        Args:
            config_dir: Path to configuration directory

        Returns:
            StatementRules with file values applied over the defaults
        """
        config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        config_file = config_dir / RULES_FILENAME

        if not config_file.exists():
            logger.warning(f"Rules file not found: {config_file}, using defaults")
            return cls()

        with open(config_file, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

        return cls.from_dict(config)

    @classmethod
    def from_dict(cls, config: dict) -> "StatementRules":
        """Build rules from a parsed configuration mapping.

        Keyword lists replace the defaults; the extra_* lists extend them.
        Column synonyms extend the built-in lists per field.
        """
        defaults = cls()

        max_candidates = config.get("max_candidates", defaults.max_candidates)

        income = tuple(config.get("income_keywords") or defaults.income_keywords)
        income += tuple(config.get("extra_income_keywords") or ())
        expense = tuple(config.get("expense_keywords") or defaults.expense_keywords)
        expense += tuple(config.get("extra_expense_keywords") or ())

        synonyms = dict(defaults.column_synonyms)
        for name, values in (config.get("column_synonyms") or {}).items():
            if name not in synonyms:
                logger.warning(f"Unknown column field in rules: {name}")
                continue
            extra = tuple(v.strip().lower() for v in values or [])
            synonyms[name] = synonyms[name] + tuple(v for v in extra if v not in synonyms[name])

        return cls(
            fallback_exchange_rate=Decimal(
                str(config.get("fallback_exchange_rate", defaults.fallback_exchange_rate))
            ),
            continuation_lookahead=int(
                config.get("continuation_lookahead", defaults.continuation_lookahead)
            ),
            min_text_length=int(config.get("min_text_length", defaults.min_text_length)),
            description_max_length=int(
                config.get("description_max_length", defaults.description_max_length)
            ),
            dedup_prefix_length=int(
                config.get("dedup_prefix_length", defaults.dedup_prefix_length)
            ),
            max_candidates=int(max_candidates) if max_candidates is not None else None,
            income_keywords=income,
            expense_keywords=expense,
            column_synonyms=synonyms,
        )
