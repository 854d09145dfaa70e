"""
Foreign-Currency Statement Scanner

Reads app-bank statements (Revolut, Wise and similar) with dates written as
"Jan 5, 2024" and currency-symbol amounts in money out / money in / balance
columns.
"""

import re
from datetime import date

from ..models import StatementLayout
from .base import BaseStatementScanner

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH_NAMES = r"jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec"
_MONTH = rf"(?P<mon>{_MONTH_NAMES})[a-z]*\.?"
_ANY_MONTH = rf"(?:{_MONTH_NAMES})[a-z]*\.?"


class ForeignCurrencyScanner(BaseStatementScanner):
    """Scanner for "Mon D, YYYY" statements with symbol-marked amounts."""

    LAYOUT = StatementLayout.FOREIGN_CURRENCY
    SOURCE = "foreign_currency"

    BANK_MARKERS = (
        "Revolut",
        "Wise",
        "TransferWise",
        "N26",
        "Paysera",
        "Monzo",
    )

    LAYOUT_MARKERS = [
        re.compile(r"(?<!\w)money\s+(?:out|in)(?!\w)", re.IGNORECASE),
        re.compile(r"(?<!\w)paid\s+(?:out|in)(?!\w)", re.IGNORECASE),
        re.compile(
            r"(?<!\w)(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2},\s+\d{4}",
            re.IGNORECASE,
        ),
    ]

    DATE_PATTERNS = [
        re.compile(rf"^\s*{_MONTH}\s+(?P<day>\d{{1,2}}),?\s+(?P<year>\d{{4}})(?!\d)", re.IGNORECASE),
        re.compile(rf"^\s*(?P<day>\d{{1,2}})\s+{_MONTH},?\s+(?P<year>\d{{4}})(?!\d)", re.IGNORECASE),
    ]

    DATE_ANYWHERE = re.compile(
        rf"(?<!\w)(?:{_ANY_MONTH}\s+\d{{1,2}},?\s+\d{{4}}|\d{{1,2}}\s+{_ANY_MONTH},?\s+\d{{4}})(?!\d)",
        re.IGNORECASE,
    )

    def match_date(self, line: str) -> tuple[date, int, int] | None:
        for pattern in self.DATE_PATTERNS:
            match = pattern.match(line)
            if not match:
                continue
            try:
                parsed = date(
                    int(match.group("year")),
                    MONTHS[match.group("mon").lower()[:3]],
                    int(match.group("day")),
                )
            except ValueError:
                return None
            return parsed, min(match.start("mon"), match.start("day")), match.end()
        return None
