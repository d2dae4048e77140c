import random
from datetime import date
from decimal import Decimal

import pytest

from analytics import (
    MOTIVATIONAL_QUOTES,
    BudgetTier,
    TransactionRecord,
    budget_status,
    budget_tier,
    build_dashboard,
    category_breakdown,
    category_totals,
    format_amount,
    monthly_series,
    overview,
)
from models import TransactionType
from periods import month_period


def _txn(
    amount,
    category: str = "Food",
    on: date = date(2024, 1, 5),
    type: str = "expense",
    emotion=None,
) -> TransactionRecord:
    return TransactionRecord(
        id=None,
        amount=Decimal(str(amount)),
        type=type,
        category=category,
        date=on,
        emotion=emotion,
    )


def test_category_totals_scenario_keeps_first_occurrence_order() -> None:
    txns = [
        _txn(100, "Food", date(2024, 1, 5)),
        _txn(50, "Food", date(2024, 1, 10)),
        _txn(50, "Rent", date(2024, 1, 15)),
    ]

    totals = category_totals(txns)

    assert totals == {"Food": Decimal("150"), "Rent": Decimal("50")}
    assert list(totals) == ["Food", "Rent"]


def test_category_totals_order_is_not_by_value_or_name() -> None:
    txns = [_txn(10, "Rent"), _txn(500, "Food"), _txn(5, "Rent"), _txn(1, "Bills")]

    assert list(category_totals(txns)) == ["Rent", "Food", "Bills"]
    assert [row.category for row in category_breakdown(txns)] == [
        "Rent",
        "Food",
        "Bills",
    ]


def test_category_totals_only_counts_expenses_and_is_case_sensitive() -> None:
    txns = [
        _txn(1000, "Salary", type="income"),
        _txn(20, "Food"),
        _txn(30, "food"),
        _txn(40, "Food ", type="refund"),
    ]

    assert category_totals(txns) == {"Food": Decimal("20"), "food": Decimal("30")}


def test_category_totals_empty_input() -> None:
    assert category_totals([]) == {}
    assert category_breakdown([]) == []


def test_category_totals_sum_matches_expense_sum() -> None:
    txns = [
        _txn("12.34", "Food"),
        _txn("0.01", "Travel", date(2023, 5, 1)),
        _txn("99.99", "Food", date(2022, 12, 31)),
        _txn("250", "Salary", type="income"),
        _txn("7.5", "Bills"),
    ]

    expected = sum(
        (t.amount for t in txns if t.type == TransactionType.expense.value),
        Decimal("0"),
    )
    assert sum(category_totals(txns).values()) == expected == Decimal("119.84")


def test_category_totals_can_be_restricted_to_a_month() -> None:
    txns = [
        _txn(10, "Food", date(2024, 1, 31)),
        _txn(20, "Food", date(2024, 2, 1)),
        _txn(30, "Rent", date(2024, 2, 29)),
    ]

    totals = category_totals(txns, period=month_period(date(2024, 2, 10)))

    assert totals == {"Food": Decimal("20"), "Rent": Decimal("30")}


def test_monthly_series_has_six_chronological_buckets_with_gaps() -> None:
    now = date(2024, 3, 15)
    txns = [
        _txn(100, "Salary", date(2024, 3, 1), type="income"),
        _txn(40, "Food", date(2024, 3, 2)),
        _txn(25, "Food", date(2023, 12, 24)),
    ]

    series = monthly_series(txns, now)

    assert len(series) == 6
    assert [(b.year, b.month) for b in series] == [
        (2023, 10),
        (2023, 11),
        (2023, 12),
        (2024, 1),
        (2024, 2),
        (2024, 3),
    ]
    assert [b.label for b in series] == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]
    assert series[0].income == Decimal("0") and series[0].expense == Decimal("0")
    assert series[2].expense == Decimal("25")
    assert series[5].income == Decimal("100")
    assert series[5].expense == Decimal("40")


def test_monthly_series_window_edges_are_inclusive_calendar_days() -> None:
    now = date(2024, 3, 1)
    txns = [
        _txn(1, on=date(2023, 9, 30)),
        _txn(2, on=date(2023, 10, 1)),
        _txn(4, on=date(2024, 3, 31)),
        _txn(8, on=date(2024, 4, 1)),
    ]

    series = monthly_series(txns, now)

    assert series[0].expense == Decimal("2")
    assert series[-1].expense == Decimal("4")
    total = sum((b.expense for b in series), Decimal("0"))
    direct = sum(
        (t.amount for t in txns if date(2023, 10, 1) <= t.date <= date(2024, 3, 31)),
        Decimal("0"),
    )
    assert total == direct == Decimal("6")


def test_monthly_series_ignores_unknown_types() -> None:
    series = monthly_series(
        [_txn(5, type="transfer", on=date(2024, 1, 3))], date(2024, 1, 31)
    )

    assert all(b.income == 0 and b.expense == 0 for b in series)


def test_budget_status_without_limit_has_zero_percentage() -> None:
    txns = [_txn(500, on=date(2024, 1, 2))]

    status = budget_status(Decimal("0"), txns, date(2024, 1, 20))

    assert status.spent == Decimal("500")
    assert status.percentage == 0
    assert status.remaining == Decimal("-500")
    assert status.tier == BudgetTier.ok
    assert not status.is_set


def test_budget_status_over_budget_scenario() -> None:
    txns = [
        _txn(700, "Rent", date(2024, 1, 1)),
        _txn(500, "Food", date(2024, 1, 31)),
        _txn(300, "Food", date(2023, 12, 31)),
        _txn(2000, "Salary", date(2024, 1, 1), type="income"),
    ]

    status = budget_status(Decimal("1000"), txns, date(2024, 1, 15))

    assert status.spent == Decimal("1200")
    assert status.percentage == Decimal("120")
    assert status.remaining == Decimal("-200")
    assert status.tier == BudgetTier.exceeded
    assert status.bar_percentage == Decimal("100")


def test_budget_tier_boundaries_belong_to_higher_tier() -> None:
    assert budget_tier(Decimal("79.99")) == BudgetTier.ok
    assert budget_tier(Decimal("80")) == BudgetTier.warning
    assert budget_tier(Decimal("99.99")) == BudgetTier.warning
    assert budget_tier(Decimal("100")) == BudgetTier.exceeded


def test_overview_totals_and_balance() -> None:
    txns = [
        _txn("1000.50", "Salary", type="income"),
        _txn("200.25", "Food"),
        _txn("50", "Bills", type="unknown"),
    ]

    result = overview(txns)

    assert result.total_income == Decimal("1000.50")
    assert result.total_expense == Decimal("200.25")
    assert result.balance == Decimal("800.25")


def test_format_amount_uses_indian_grouping() -> None:
    assert format_amount(Decimal("150")) == "150"
    assert format_amount(Decimal("1000")) == "1,000"
    assert format_amount(Decimal("150000")) == "1,50,000"
    assert format_amount(Decimal("1234567.5")) == "12,34,567.5"
    assert format_amount(Decimal("12.340")) == "12.34"
    assert format_amount(Decimal("-2500")) == "-2,500"


def test_record_from_mapping_accepts_client_rows() -> None:
    record = TransactionRecord.from_mapping(
        {
            "id": "a1b2",
            "title": "Groceries",
            "amount": "12.50",
            "type": TransactionType.expense,
            "category": "Food",
            "date": "2024-01-05",
            "emotion": "",
            "notes": None,
        }
    )

    assert record.amount == Decimal("12.50")
    assert record.type == "expense"
    assert record.date == date(2024, 1, 5)
    assert record.emotion is None


def test_build_dashboard_does_not_mutate_input() -> None:
    txns = [
        _txn(100, "Food", date(2024, 1, 5)),
        _txn(50, "Rent", date(2024, 1, 6), emotion="regret"),
        _txn(900, "Salary", date(2024, 1, 1), type="income"),
    ]
    before = list(txns)

    snapshot = build_dashboard(
        txns,
        today=date(2024, 1, 20),
        budget_limit=Decimal("200"),
        currency="$",
        rng=random.Random(7),
    )

    assert txns == before
    assert snapshot.overview.balance == Decimal("750")
    assert [row.category for row in snapshot.category_totals] == ["Food", "Rent"]
    assert len(snapshot.monthly_series) == 6
    assert snapshot.budget.percentage == Decimal("75")
    assert snapshot.quote in MOTIVATIONAL_QUOTES


@pytest.mark.parametrize("amount", ["NaN", "Infinity", "-inf", "sNaN", "twelve"])
def test_record_from_mapping_rejects_non_finite_amounts(amount) -> None:
    row = {
        "amount": amount,
        "type": "expense",
        "category": "Food",
        "date": "2024-01-05",
    }

    with pytest.raises(ValueError, match="Invalid amount"):
        TransactionRecord.from_mapping(row)


def test_record_from_mapping_rejects_non_date_values() -> None:
    row = {"amount": "5", "type": "expense", "category": "Food", "date": 20240105}

    with pytest.raises(ValueError, match="Invalid date"):
        TransactionRecord.from_mapping(row)
