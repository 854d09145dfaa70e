"""
Pytest configuration and fixtures for statement processor tests.
"""

import sys
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

sys.path.insert(0, str(PROJECT_ROOT / "python"))


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def foreign_statement_text() -> str:
    """Return an app-bank statement with a wrapped entry and a page break."""
    return """Revolut Bank UAB
EUR Statement
Generated on Feb 1, 2024
Account holder: Jane Doe
Date Description Money out Money in Balance
Jan 5, 2024 Transfer from Jane Doe €120.00 €1,120.00
Jan 6, 2024 Card payment
LIDL SOFIA 1234
€12.50 €1,107.50
Page 1 of 2
Date Description Money out Money in Balance
Jan 8, 2024 Refund Amazon EU €30.00 €1,137.50
Jan 9, 2024 Transfer to John Smith €200.00 €937.50
Closing balance €937.50
Jan 31, 2024 Interest earned €0.50 €938.00
"""


@pytest.fixture
def ledger_statement_text() -> str:
    """Return a local bank ledger with Дт/Кт codes and BGN (EUR) pairs."""
    return """Банка ДСК
Извлечение по сметка
Титуляр: Иван Петров
Период: 01.01.2024 - 31.01.2024
Дата Основание Дт/Кт Сума
Начално салдо 1 000.00
05.01.2024 Плащане KAUFLAND Дт 19.17 BGN (9.80 EUR)
08.01.2024 Получен превод от Мария Иванова Кт 391.17 BGN (200.00 EUR)
10.01.2024 Теглене от банкомат
ATM SOFIA CENTER
Дт 100.00 BGN (51.13 EUR)
Страница 1 от 2
Дата Основание Дт/Кт Сума
15.01.2024 Такса обслужване Дт 3.00
Общо обороти Дт 122.17 Кт 391.17
"""


@pytest.fixture
def sample_csv_content() -> str:
    """Return sample CSV content for testing the tabular path."""
    return """Дата;Сума;Описание;Тип
01.02.2024;-25.50;KAUFLAND;
02.02.2024;1500.00;Заплата януари;приход
03.02.2024;12.00;Такси;разход
04.02.2024;;;
"""
