import csv
from datetime import date
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from csv_utils import (
    CSV_HEADER,
    parse_amount,
    parse_csv,
    parse_date,
    sanitize_csv_value,
)
from database import Base
from models import Emotion, TransactionType
from schemas import TransactionIn
from services import TransactionService


def test_parse_amount_accepts_symbols_and_separators() -> None:
    assert parse_amount("12.99") == 1299
    assert parse_amount("₹ 1 500") == 150_000
    assert parse_amount("$7,5") == 750
    assert parse_amount("1.234,56") == 123_456


def test_parse_amount_rejects_bad_values() -> None:
    with pytest.raises(ValueError, match="Invalid amount"):
        parse_amount("abc")
    with pytest.raises(ValueError, match="Invalid amount"):
        parse_amount("nan")
    with pytest.raises(ValueError, match="Amount must be positive"):
        parse_amount("-5")
    assert parse_amount("-5", allow_negative=True) == -500


def test_parse_date_formats() -> None:
    assert parse_date("2024-02-29") == date(2024, 2, 29)
    assert parse_date("01.03.2024") == date(2024, 3, 1)


def test_sanitize_csv_value_neutralizes_formulas() -> None:
    assert sanitize_csv_value("=SUM(A1)") == "\t=SUM(A1)"
    assert sanitize_csv_value("cmd /c calc") == "\tcmd /c calc"
    assert sanitize_csv_value("  Lunch ") == "Lunch"
    assert sanitize_csv_value("") == ""


def test_parse_csv_collects_row_errors() -> None:
    content = (
        "Date,Type,Title,Amount,Category,Emotion,Notes\n"
        "2024-01-05,Expense,Lunch,12.50,food,Regret,\n"
        "2024-01-06,expense,Taxi,abc,Transport,,\n"
        "2024-01-07,income,Bonus,100,Groceries,,\n"
    )

    rows, errors = parse_csv(content)

    assert len(rows) == 1
    assert rows[0].category == "Food"
    assert rows[0].emotion == Emotion.regret
    assert rows[0].amount_cents == 1250
    assert len(errors) == 2
    assert errors[0].startswith("Row 2:")
    assert errors[1].startswith("Row 3:")


def test_export_then_import_through_service() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = TransactionService(session)
        service.create(
            TransactionIn(
                title="=HYPERLINK()",
                amount_cents=4_250,
                type=TransactionType.expense,
                category="Shopping",
                date=date(2024, 4, 2),
                emotion="happy",
                notes="gift for mom",
            )
        )

        exported = service.export_csv()
        reader = csv.reader(StringIO(exported))
        header, row = next(reader), next(reader)

        assert header == CSV_HEADER
        assert row == [
            "2024-04-02",
            "expense",
            "\t=HYPERLINK()",
            "42.50",
            "Shopping",
            "happy",
            "gift for mom",
        ]

        imported, errors = service.import_csv(exported)

        assert (imported, errors) == (1, [])
        titles = [t.title for t in service.list_all()]
        assert len(titles) == 2


def test_reimport_keeps_notes_that_were_neutralized_on_export() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = TransactionService(session)
        service.create(
            TransactionIn(
                title="Correction",
                amount_cents=500,
                type=TransactionType.expense,
                category="Other",
                date=date(2024, 4, 3),
                notes="-5 adjustment",
            )
        )

        exported = service.export_csv()
        assert "\t-5 adjustment" in exported

        service.import_csv(exported)

        notes = [t.notes for t in service.list_all()]
        assert notes == ["-5 adjustment", "-5 adjustment"]


def test_parse_csv_blank_notes_become_none() -> None:
    content = (
        "Date,Type,Title,Amount,Category,Emotion,Notes\n"
        "2024-01-05,expense,Lunch,12.50,Food,,   \n"
    )

    rows, errors = parse_csv(content)

    assert errors == []
    assert rows[0].notes is None
