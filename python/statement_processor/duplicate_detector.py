"""
Duplicate Transaction Detector Module

Collapses duplicate drafts within one parse pass, merges the output of an
alternate parser and filters drafts that already exist in the user's history.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .interfaces import HistoryLookup
from .models import CompositeKey, TransactionDraft

logger = logging.getLogger(__name__)


@dataclass
class DuplicateMatch:
    """A draft that was dropped, and what it collided with."""

    transaction: TransactionDraft
    matched_key: CompositeKey
    reason: str  # 'in_batch', 'history' or 'history_fuzzy'


@dataclass
class DeduplicationResult:
    """Result of deduplication check."""

    unique_transactions: list[TransactionDraft] = field(default_factory=list)
    in_batch_duplicates: list[DuplicateMatch] = field(default_factory=list)
    history_duplicates: list[DuplicateMatch] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    @property
    def duplicate_count(self) -> int:
        return len(self.in_batch_duplicates) + len(self.history_duplicates)

    def _build_stats(self, total: int) -> None:
        self.stats = {
            "total_checked": total,
            "unique": len(self.unique_transactions),
            "in_batch_duplicates": len(self.in_batch_duplicates),
            "history_duplicates": len(self.history_duplicates),
            "duplicate_rate": self.duplicate_count / total if total > 0 else 0,
        }


class DuplicateDetector:
    """Detects duplicate drafts by composite key."""

    def __init__(self, prefix_length: int = 30):
        """Initialize the duplicate detector.

        Args:
            prefix_length: Description characters included in the key
        """
        self.prefix_length = prefix_length

    def key(self, draft: TransactionDraft) -> CompositeKey:
        return draft.composite_key(self.prefix_length)

    def dedupe(self, drafts: Iterable[TransactionDraft]) -> DeduplicationResult:
        """Drop later drafts whose key collides with an earlier one.

        Args:
            drafts: Drafts in document order

        Returns:
            DeduplicationResult preserving the order of first occurrences
        """
        result = DeduplicationResult()
        seen: set[CompositeKey] = set()
        total = 0

        for draft in drafts:
            total += 1
            key = self.key(draft)
            if key in seen:
                result.in_batch_duplicates.append(DuplicateMatch(draft, key, "in_batch"))
                continue
            seen.add(key)
            result.unique_transactions.append(draft)

        result._build_stats(total)
        return result

    def merge(
        self,
        primary: list[TransactionDraft],
        alternate: list[TransactionDraft]
    ) -> DeduplicationResult:
        """Union two draft lists; on collision the primary draft wins.

        Args:
            primary: Drafts from the heuristic scanners
            alternate: Drafts from the alternate parser

        Returns:
            DeduplicationResult over the union
        """
        return self.dedupe(list(primary) + list(alternate))

    def filter_existing(
        self,
        drafts: Iterable[TransactionDraft],
        existing_keys: set[CompositeKey]
    ) -> DeduplicationResult:
        """Drop drafts that already exist in the given key set.

        A draft matches on an equal key, or on a key with the same date and
        amount whose description prefix contains (or is contained in) the
        draft's.

        Args:
            drafts: Incoming drafts
            existing_keys: Keys of previously imported transactions

        Returns:
            DeduplicationResult with history duplicates separated out
        """
        result = DeduplicationResult()
        index: dict[tuple[Any, Any], list[str]] = {}
        for existing in existing_keys:
            index.setdefault((existing.date, existing.amount), []).append(
                existing.description_prefix
            )

        total = 0
        for draft in drafts:
            total += 1
            key = self.key(draft)

            if key in existing_keys:
                result.history_duplicates.append(DuplicateMatch(draft, key, "history"))
                continue

            fuzzy = self._find_containing(key, index.get((key.date, key.amount), []))
            if fuzzy is not None:
                result.history_duplicates.append(DuplicateMatch(
                    draft,
                    CompositeKey(key.date, key.amount, fuzzy),
                    "history_fuzzy",
                ))
                continue

            result.unique_transactions.append(draft)

        result._build_stats(total)
        return result

    def _find_containing(self, key: CompositeKey, prefixes: list[str]) -> str | None:
        mine = key.description_prefix
        if not mine:
            return None
        for prefix in prefixes:
            if prefix and (prefix in mine or mine in prefix):
                return prefix
        return None

    def filter_against_history(
        self,
        drafts: Iterable[TransactionDraft],
        user_id: Any,
        lookup: HistoryLookup
    ) -> DeduplicationResult:
        """Drop drafts already present in a user's persisted history.

        Args:
            drafts: Incoming drafts
            user_id: Owner of the history
            lookup: History store collaborator

        Returns:
            DeduplicationResult
        """
        existing = set(lookup.existing_keys_for(user_id))
        logger.debug(f"Checking drafts against {len(existing)} existing keys")
        return self.filter_existing(drafts, existing)
