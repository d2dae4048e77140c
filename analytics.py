"""Pure aggregation over a snapshot of transactions.

Nothing in here touches the database or reads ambient preferences: callers
pass the records, the current date, the budget limit and the currency symbol.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from models import Emotion, TransactionType
from periods import (
    Period,
    add_months,
    days_in_month,
    month_period,
    trailing_months,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

TREND_MONTHS = 6
BUDGET_WARNING_PERCENT = Decimal("80")
BUDGET_EXCEEDED_PERCENT = Decimal("100")
DOMINANT_CATEGORY_PERCENT = Decimal("40")
FORECAST_OVERSHOOT_FACTOR = Decimal("1.2")

INCOME = TransactionType.income.value
EXPENSE = TransactionType.expense.value
REGRET = Emotion.regret.value

MOTIVATIONAL_QUOTES = (
    "A penny saved is a penny earned.",
    "It's not about how much money you make, but how much you keep.",
    "Financial freedom is available to those who learn about it and work for it.",
    "The best time to plant a tree was 20 years ago. The second best time is now.",
    "Don't save what is left after spending, spend what is left after saving.",
)


def _as_str(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class TransactionRecord:
    id: Any
    amount: Decimal
    type: str
    category: str
    date: date
    emotion: Optional[str] = None
    notes: Optional[str] = None
    title: str = ""

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> TransactionRecord:
        raw_date = row["date"]
        if isinstance(raw_date, str):
            txn_date = date.fromisoformat(raw_date[:10])
        else:
            txn_date = _as_date(raw_date)
        if not isinstance(txn_date, date):
            raise ValueError(f"Invalid date: {raw_date!r}")
        try:
            amount = Decimal(str(row.get("amount", 0)))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {row.get('amount')!r}") from exc
        if not amount.is_finite():
            raise ValueError(f"Invalid amount: {row.get('amount')!r}")
        return cls(
            id=row.get("id"),
            amount=amount,
            type=_as_str(row.get("type")),
            category=_as_str(row.get("category")),
            date=txn_date,
            emotion=_as_str(row.get("emotion")) or None,
            notes=row.get("notes") or None,
            title=_as_str(row.get("title")),
        )


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: Decimal


@dataclass(frozen=True)
class MonthlyBucket:
    year: int
    month: int
    label: str
    income: Decimal
    expense: Decimal


class BudgetTier(str, Enum):
    ok = "ok"
    warning = "warning"
    exceeded = "exceeded"


def budget_tier(percentage: Decimal) -> BudgetTier:
    if percentage >= BUDGET_EXCEEDED_PERCENT:
        return BudgetTier.exceeded
    if percentage >= BUDGET_WARNING_PERCENT:
        return BudgetTier.warning
    return BudgetTier.ok


@dataclass(frozen=True)
class BudgetStatus:
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: Decimal
    tier: BudgetTier = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier", budget_tier(self.percentage))

    @property
    def is_set(self) -> bool:
        return self.limit > 0

    @property
    def bar_percentage(self) -> Decimal:
        return min(max(self.percentage, ZERO), HUNDRED)


@dataclass(frozen=True)
class Overview:
    total_income: Decimal
    total_expense: Decimal
    balance: Decimal


class InsightKind(str, Enum):
    month_over_month = "month_over_month"
    dominant_category = "dominant_category"
    regretful_spending = "regretful_spending"
    spending_forecast = "spending_forecast"


class Severity(str, Enum):
    info = "info"
    warning = "warning"
    alert = "alert"


@dataclass(frozen=True)
class Insight:
    kind: InsightKind
    title: str
    message: str
    severity: Severity


@dataclass(frozen=True)
class InsightContext:
    current_month_expense: Decimal
    prior_month_expense: Decimal
    category_totals: Mapping[str, Decimal]
    regret_total: Decimal
    regret_count: int
    day_of_month: int
    days_in_month: int
    month_name: str = ""
    currency: str = ""


@dataclass(frozen=True)
class DashboardSnapshot:
    overview: Overview
    category_totals: list[CategoryTotal]
    monthly_series: list[MonthlyBucket]
    budget: BudgetStatus
    insights: list[Insight]
    quote: str


def _within(record: TransactionRecord, period: Optional[Period]) -> bool:
    return period is None or period.contains(record.date)


def sum_amounts(
    transactions: Iterable[TransactionRecord],
    txn_type: str,
    *,
    period: Optional[Period] = None,
) -> Decimal:
    txn_type = _as_str(txn_type)
    total = ZERO
    for record in transactions:
        if record.type == txn_type and _within(record, period):
            total += record.amount
    return total


def category_totals(
    transactions: Iterable[TransactionRecord], *, period: Optional[Period] = None
) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for record in transactions:
        if record.type != EXPENSE or not _within(record, period):
            continue
        totals[record.category] = totals.get(record.category, ZERO) + record.amount
    return totals


def category_breakdown(
    transactions: Iterable[TransactionRecord], *, period: Optional[Period] = None
) -> list[CategoryTotal]:
    return [
        CategoryTotal(category=name, total=total)
        for name, total in category_totals(transactions, period=period).items()
    ]


def monthly_series(
    transactions: Iterable[TransactionRecord],
    now: date,
    *,
    months: int = TREND_MONTHS,
) -> list[MonthlyBucket]:
    windows = trailing_months(_as_date(now), months)
    if not windows:
        return []
    window_start = windows[0].start
    window_end = windows[-1].end

    income_totals: dict[tuple[int, int], Decimal] = {}
    expense_totals: dict[tuple[int, int], Decimal] = {}
    for record in transactions:
        if not window_start <= record.date <= window_end:
            continue
        key = (record.date.year, record.date.month)
        if record.type == INCOME:
            income_totals[key] = income_totals.get(key, ZERO) + record.amount
        elif record.type == EXPENSE:
            expense_totals[key] = expense_totals.get(key, ZERO) + record.amount

    out: list[MonthlyBucket] = []
    for window in windows:
        key = (window.start.year, window.start.month)
        out.append(
            MonthlyBucket(
                year=window.start.year,
                month=window.start.month,
                label=window.start.strftime("%b"),
                income=income_totals.get(key, ZERO),
                expense=expense_totals.get(key, ZERO),
            )
        )
    return out


def overview(transactions: Sequence[TransactionRecord]) -> Overview:
    income = sum_amounts(transactions, INCOME)
    expense = sum_amounts(transactions, EXPENSE)
    return Overview(
        total_income=income, total_expense=expense, balance=income - expense
    )


def budget_status(
    limit: Decimal, transactions: Iterable[TransactionRecord], now: date
) -> BudgetStatus:
    limit = Decimal(limit)
    spent = sum_amounts(transactions, EXPENSE, period=month_period(_as_date(now)))
    percentage = ZERO if limit == 0 else spent / limit * HUNDRED
    return BudgetStatus(
        limit=limit, spent=spent, remaining=limit - spent, percentage=percentage
    )


def format_amount(value: Decimal) -> str:
    """Render an amount with Indian digit grouping, e.g. ``12,34,567.5``."""
    sign = "-" if value < 0 else ""
    rounded = abs(Decimal(value)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    whole, _, fraction = f"{rounded:f}".partition(".")
    fraction = fraction.rstrip("0")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups: list[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


def _fixed(value: Decimal, places: int) -> str:
    exponent = Decimal(1).scaleb(-places)
    return f"{value.quantize(exponent, rounding=ROUND_HALF_UP):f}"


def _money(context: InsightContext, value: Decimal) -> str:
    return f"{context.currency}{format_amount(value)}"


def build_insight_context(
    transactions: Iterable[TransactionRecord], now: date, *, currency: str = ""
) -> InsightContext:
    now = _as_date(now)
    records = tuple(transactions)
    current = month_period(now)
    prior = month_period(add_months(now, -1))

    regretful = [
        r
        for r in records
        if r.type == EXPENSE and r.emotion == REGRET and current.contains(r.date)
    ]
    return InsightContext(
        current_month_expense=sum_amounts(records, EXPENSE, period=current),
        prior_month_expense=sum_amounts(records, EXPENSE, period=prior),
        category_totals=category_totals(records, period=current),
        regret_total=sum((r.amount for r in regretful), ZERO),
        regret_count=len(regretful),
        day_of_month=now.day,
        days_in_month=days_in_month(now),
        month_name=now.strftime("%B"),
        currency=currency,
    )


def month_over_month_rule(context: InsightContext) -> Optional[Insight]:
    prior = context.prior_month_expense
    current = context.current_month_expense
    # no baseline without prior-month expenses
    if prior <= 0 or current == prior:
        return None
    change = (current - prior) / prior * HUNDRED
    decreased = change < 0
    if decreased:
        advice = "Excellent work! Keep up the good habits."
    else:
        advice = "Consider reviewing your expenses to identify savings opportunities."
    return Insight(
        kind=InsightKind.month_over_month,
        title="Spending Decreased!" if decreased else "Spending Increased",
        message=(
            f"Your {context.month_name} expenses "
            f"{'dropped' if decreased else 'increased'} by {_fixed(abs(change), 1)}% "
            f"compared to last month. {advice}"
        ),
        severity=Severity.info if decreased else Severity.warning,
    )


def top_category(totals: Mapping[str, Decimal]) -> Optional[tuple[str, Decimal]]:
    """Highest-spending category; ties keep the earliest one."""
    top: Optional[tuple[str, Decimal]] = None
    for name, total in totals.items():
        if top is None or total > top[1]:
            top = (name, total)
    return top


def dominant_category_rule(context: InsightContext) -> Optional[Insight]:
    top = top_category(context.category_totals)
    if top is None or context.current_month_expense <= 0:
        return None
    name, total = top
    share = total / context.current_month_expense * HUNDRED
    if share < DOMINANT_CATEGORY_PERCENT:
        return None
    return Insight(
        kind=InsightKind.dominant_category,
        title="Category Alert",
        message=(
            f"You're spending {_fixed(share, 0)}% of your money on {name} this month "
            f"({_money(context, total)}). Consider setting a category-specific "
            "budget or finding cheaper alternatives."
        ),
        severity=Severity.alert,
    )


def regretful_spending_rule(context: InsightContext) -> Optional[Insight]:
    count = context.regret_count
    if count <= 0:
        return None
    if context.current_month_expense > 0:
        share = context.regret_total / context.current_month_expense * HUNDRED
    else:
        share = ZERO
    plural = "s" if count > 1 else ""
    return Insight(
        kind=InsightKind.regretful_spending,
        title="Regretful Spending",
        message=(
            f'You tagged {count} expense{plural} as "regret" this month '
            f"({_money(context, context.regret_total)} or {_fixed(share, 1)}% of "
            "total). Before making similar purchases, try waiting 24 hours to see "
            "if you still want it."
        ),
        severity=Severity.warning,
    )


def spending_forecast_rule(context: InsightContext) -> Optional[Insight]:
    if context.day_of_month <= 0:
        return None
    current = context.current_month_expense
    avg_daily = current / context.day_of_month
    projected = avg_daily * context.days_in_month
    if projected <= 0:
        return None
    overshooting = projected > current * FORECAST_OVERSHOOT_FACTOR
    if overshooting:
        advice = "Try to reduce daily spending to stay on track."
    else:
        advice = "Keep up the consistent spending!"
    return Insight(
        kind=InsightKind.spending_forecast,
        title="Spending Forecast",
        message=(
            f"Based on your current spending pattern "
            f"({context.currency}{_fixed(avg_daily, 2)}/day), you're projected to "
            f"spend {_money(context, projected)} by month end. {advice}"
        ),
        severity=Severity.warning if overshooting else Severity.info,
    )


InsightRule = Callable[[InsightContext], Optional[Insight]]

INSIGHT_RULES: tuple[InsightRule, ...] = (
    month_over_month_rule,
    dominant_category_rule,
    regretful_spending_rule,
    spending_forecast_rule,
)


def evaluate_insights(
    context: InsightContext, rules: Sequence[InsightRule] = INSIGHT_RULES
) -> list[Insight]:
    insights: list[Insight] = []
    for rule in rules:
        insight = rule(context)
        if insight is not None:
            insights.append(insight)
    return insights


def generate_insights(
    transactions: Iterable[TransactionRecord], now: date, *, currency: str = ""
) -> list[Insight]:
    return evaluate_insights(
        build_insight_context(transactions, now, currency=currency)
    )


def pick_quote(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(MOTIVATIONAL_QUOTES)


def build_dashboard(
    transactions: Iterable[TransactionRecord],
    *,
    today: date,
    budget_limit: Decimal = ZERO,
    currency: str = "",
    rng: Optional[random.Random] = None,
) -> DashboardSnapshot:
    records = tuple(transactions)
    today = _as_date(today)
    return DashboardSnapshot(
        overview=overview(records),
        category_totals=category_breakdown(records),
        monthly_series=monthly_series(records, today),
        budget=budget_status(budget_limit, records, today),
        insights=generate_insights(records, today, currency=currency),
        quote=pick_quote(rng),
    )
