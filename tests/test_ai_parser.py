"""
Model-Assisted Parser Tests

Tests for reply validation and the Claude API call, with the client mocked.
"""

import json
import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock, patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_processor.ai_parser import (
    MAX_TEXT_LENGTH,
    ModelAssistedParser,
    extract_json_array,
)
from statement_processor.interfaces import AlternateParser
from statement_processor.models import Direction


REPLY_ITEMS = [
    {"date": "2024-01-05", "description": "KAUFLAND SOFIA", "amount": 9.80, "type": "expense"},
    {"date": "08.01.2024", "description": "Получен превод", "amount": "200.00", "type": "income"},
    {"date": "2024-13-40", "description": "Bad date", "amount": 1, "type": "expense"},
    {"date": "2024-01-06", "description": "Negative", "amount": -5, "type": "expense"},
    {"date": "2024-01-06", "description": "Unknown type", "amount": 5, "type": "transfer"},
    {"date": "2024-01-06", "description": "Huge", "amount": 5000000, "type": "income"},
    {"date": "2024-01-06", "description": "X", "amount": 5, "type": "income"},
    "not an object",
]


class TestExtractJsonArray:
    """Tests for extract_json_array."""

    def test_plain_array(self):
        assert extract_json_array('[{"a": 1}]') == [{"a": 1}]

    def test_fenced_array(self):
        assert extract_json_array('```json\n[{"a": 1}]\n```') == [{"a": 1}]

    def test_array_inside_prose(self):
        assert extract_json_array('Here you go:\n[1, 2]\nDone.') == [1, 2]

    def test_garbage(self):
        assert extract_json_array("no json here") is None
        assert extract_json_array("") is None


class TestParseResponse:
    """Tests for reply validation."""

    @pytest.fixture
    def parser(self):
        return ModelAssistedParser(client=Mock())

    def test_valid_items_kept(self, parser):
        result = parser.parse_response(json.dumps(REPLY_ITEMS, ensure_ascii=False))

        assert len(result.transactions) == 2
        assert result.rejected_count == 6

        first, second = result.transactions
        assert first.date == date(2024, 1, 5)
        assert first.amount == Decimal("9.80")
        assert first.direction is Direction.EXPENSE
        assert first.source == "model_assisted"
        assert second.date == date(2024, 1, 8)
        assert second.direction is Direction.INCOME

    def test_non_array_reply(self, parser):
        result = parser.parse_response('{"transactions": "none"}')

        assert result.transactions == []
        assert result.errors

    def test_is_alternate_parser(self, parser):
        assert isinstance(parser, AlternateParser)


class TestModelAssistedParser:
    """Tests for the API call."""

    @pytest.fixture
    def mock_anthropic(self):
        """Create mock Anthropic client."""
        with patch("statement_processor.ai_parser.anthropic") as mock:
            mock_client = Mock()
            mock.Anthropic.return_value = mock_client

            mock_response = Mock()
            mock_response.content = [Mock(text=json.dumps(REPLY_ITEMS[:2], ensure_ascii=False))]
            mock_response.usage = Mock(input_tokens=1200, output_tokens=150)
            mock_client.messages.create.return_value = mock_response

            yield mock

    def test_extract(self, mock_anthropic):
        parser = ModelAssistedParser(api_key="test-key")

        result = parser.extract("05.01.2024 KAUFLAND Дт 19.17 BGN (9.80 EUR)")

        assert len(result.transactions) == 2
        assert result.raw_response["usage"]["input_tokens"] == 1200
        assert result.raw_response["clipped"] is False
        mock_anthropic.Anthropic.assert_called_once_with(api_key="test-key")

    def test_parse_returns_drafts(self, mock_anthropic):
        parser = ModelAssistedParser(api_key="test-key")

        drafts = parser.parse("05.01.2024 KAUFLAND Дт 19.17 BGN (9.80 EUR)")

        assert [d.amount for d in drafts] == [Decimal("9.80"), Decimal("200.00")]

    def test_long_text_is_clipped(self, mock_anthropic):
        parser = ModelAssistedParser(api_key="test-key")

        result = parser.extract("x" * (MAX_TEXT_LENGTH + 500))

        call = mock_anthropic.Anthropic.return_value.messages.create.call_args
        content = call.kwargs["messages"][0]["content"]
        assert content.endswith("x" * 10)
        assert len(content) == len(parser.EXTRACTION_PROMPT) + MAX_TEXT_LENGTH
        assert result.raw_response["clipped"] is True

    def test_empty_text_skips_call(self):
        client = Mock()
        parser = ModelAssistedParser(client=client)

        result = parser.extract("   ")

        assert result.transactions == []
        client.messages.create.assert_not_called()

    def test_client_failure_is_reported(self):
        """Failures end up in errors instead of propagating."""
        client = Mock()
        client.messages.create.side_effect = RuntimeError("connection reset")
        parser = ModelAssistedParser(client=client)

        result = parser.extract("05.01.2024 KAUFLAND Дт 19.17 BGN (9.80 EUR)")

        assert result.transactions == []
        assert any("connection reset" in e for e in result.errors)
