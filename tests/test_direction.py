"""
Direction Classifier Tests
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_processor.direction import (
    DirectionClassifier,
    DirectionCue,
    code_to_direction,
)
from statement_processor.models import Direction


class TestCodeToDirection:
    """Tests for debit/credit code mapping."""

    @pytest.mark.parametrize("code,expected", [
        ("Дт", Direction.EXPENSE),
        ("дт.", Direction.EXPENSE),
        ("DR", Direction.EXPENSE),
        ("Кт", Direction.INCOME),
        ("CR", Direction.INCOME),
        ("к", Direction.INCOME),
        ("xx", None),
    ])
    def test_codes(self, code, expected):
        """Codes map to directions regardless of case."""
        assert code_to_direction(code) is expected


class TestDirectionClassifier:
    """Tests for DirectionClassifier."""

    @pytest.fixture
    def classifier(self):
        return DirectionClassifier()

    def test_code_before_amount(self, classifier):
        """A code right before the amount is found."""
        line = "Дт 100.00"

        assert classifier.code_near(line, 3, 9) is Direction.EXPENSE

    def test_code_after_amount(self, classifier):
        """A code right after the amount is found."""
        line = "100.00 Кт"

        assert classifier.code_near(line, 0, 6) is Direction.INCOME

    def test_code_inside_word_ignored(self, classifier):
        """Letters at the end of a word are not codes."""
        line = "Продукт 100.00"

        assert classifier.code_near(line, 8, 14) is None

    def test_keyword_income(self, classifier):
        """Income phrases give income."""
        assert classifier.keyword_cue("Transfer from Jane Doe") is Direction.INCOME
        assert classifier.keyword_cue("Получен превод от Мария") is Direction.INCOME

    def test_keyword_expense(self, classifier):
        """Expense phrases give expense."""
        assert classifier.keyword_cue("Превод към Иван") is Direction.EXPENSE
        assert classifier.keyword_cue("ATM SOFIA CENTER") is Direction.EXPENSE

    def test_earliest_keyword_wins(self, classifier):
        """The keyword appearing first decides."""
        assert classifier.keyword_cue("Refund of card payment") is Direction.INCOME
        assert classifier.keyword_cue("Card payment refund") is Direction.EXPENSE

    def test_longest_keyword_wins_at_same_position(self, classifier):
        """At the same position the longer phrase decides."""
        assert classifier.keyword_cue("Payment from Acme Ltd") is Direction.INCOME

    def test_whole_words_only(self, classifier):
        """Keywords do not match inside other words."""
        assert classifier.keyword_cue("Batman comics") is None

    def test_custom_keywords(self):
        """Keyword lists can be replaced."""
        classifier = DirectionClassifier(income_keywords=["bonus"], expense_keywords=["rent"])

        assert classifier.keyword_cue("Bonus Q1") is Direction.INCOME
        assert classifier.keyword_cue("Refund") is None

    def test_layout_beats_keyword(self, classifier):
        """A layout cue overrides keywords."""
        decision = classifier.classify("Refund Amazon", Direction.EXPENSE)

        assert decision.direction is Direction.EXPENSE
        assert decision.cue is DirectionCue.LAYOUT

    def test_keyword_cue(self, classifier):
        """Without a layout cue keywords decide."""
        decision = classifier.classify("Refund Amazon")

        assert decision.direction is Direction.INCOME
        assert decision.cue is DirectionCue.KEYWORD

    def test_default_expense(self, classifier):
        """Without any cue the entry is an expense."""
        decision = classifier.classify("KAUFLAND SOFIA")

        assert decision.direction is Direction.EXPENSE
        assert decision.cue is DirectionCue.DEFAULT
