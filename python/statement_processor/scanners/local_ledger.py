"""
Local Ledger Scanner

Reads Bulgarian bank account statements: dates written as DD.MM.YYYY,
Дт/Кт codes next to the amount and "BGN (EUR)" amount pairs. Unmarked
amounts are taken to be in BGN.
"""

import re
from datetime import date

from ..currency import Currency
from ..models import StatementLayout
from .base import BaseStatementScanner


class LocalLedgerScanner(BaseStatementScanner):
    """Scanner for DD.MM.YYYY ledgers with debit/credit codes."""

    LAYOUT = StatementLayout.LOCAL_LEDGER
    SOURCE = "local_ledger"

    BANK_MARKERS = (
        "Банка ДСК",
        "ДСК",
        "DSK Bank",
        "УниКредит Булбанк",
        "UniCredit Bulbank",
        "Първа инвестиционна банка",
        "Fibank",
        "Пощенска банка",
        "Postbank",
        "Обединена българска банка",
        "ОББ",
        "UBB",
        "Райфайзенбанк",
        "Raiffeisenbank",
        "ЦКБ",
        "Българо-американска кредитна банка",
        "Алианц Банк България",
        "Инвестбанк",
        "ПроКредит Банк",
    )

    LAYOUT_MARKERS = [
        re.compile(r"(?<!\w)(?:Дт|Кт)(?!\w)", re.IGNORECASE),
        re.compile(r"(?<!\w)(?:дебит|кредит)(?!\w)", re.IGNORECASE),
        re.compile(r"BGN\s*\(\s*[\d.,\s]+\s*(?:EUR|€)?\s*\)", re.IGNORECASE),
        re.compile(r"(?<![\d.])\d{2}\.\d{2}\.\d{4}(?!\d)"),
    ]

    BARE_CURRENCY = Currency.BGN

    DATE_PATTERN = re.compile(
        r"^\s*(?P<day>\d{1,2})\.(?P<month>\d{1,2})\.(?P<year>\d{4})(?:\s*г\.)?(?![\d.])"
    )
    DATE_ANYWHERE = re.compile(r"(?<![\d.])\d{1,2}\.\d{1,2}\.\d{4}(?:\s*г\.)?(?![\d.])")

    def match_date(self, line: str) -> tuple[date, int, int] | None:
        match = self.DATE_PATTERN.match(line)
        if not match:
            return None
        try:
            parsed = date(
                int(match.group("year")),
                int(match.group("month")),
                int(match.group("day")),
            )
        except ValueError:
            return None
        return parsed, match.start("day"), match.end()
