"""
Collaborator Interfaces

Protocols for the services the engine talks to but does not implement.
"""

from typing import Any, Protocol, runtime_checkable

from .models import CompositeKey, TransactionDraft


@runtime_checkable
class HistoryLookup(Protocol):
    """Store of previously imported transactions."""

    def existing_keys_for(self, user_id: Any) -> set[CompositeKey]:
        ...


@runtime_checkable
class AlternateParser(Protocol):
    """A second producer of drafts from the same document text."""

    def parse(self, text: str) -> list[TransactionDraft]:
        ...


class CategoryClassifier(Protocol):
    """Assigns categories to drafts after extraction."""

    def classify(self, description: str, amount: Any, direction: Any) -> dict:
        ...
