from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class Emotion(str, Enum):
    happy = "happy"
    neutral = "neutral"
    regret = "regret"


class Theme(str, Enum):
    light = "light"
    dark = "dark"


class IncomeCategory(str, Enum):
    salary = "Salary"
    freelance = "Freelance"
    business = "Business"
    investment = "Investment"
    gift = "Gift"
    other = "Other"


class ExpenseCategory(str, Enum):
    food = "Food"
    rent = "Rent"
    transport = "Transport"
    bills = "Bills"
    shopping = "Shopping"
    entertainment = "Entertainment"
    healthcare = "Healthcare"
    education = "Education"
    travel = "Travel"
    other = "Other"


CATEGORIES: dict[TransactionType, list[str]] = {
    TransactionType.income: [member.value for member in IncomeCategory],
    TransactionType.expense: [member.value for member in ExpenseCategory],
}


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    emotion: Mapped[Optional[Emotion]] = mapped_column(SAEnum(Emotion))

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_date", "user_id", "type", "date"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="uq_budget_user_month"),
        CheckConstraint("limit_cents >= 0", name="ck_budget_limit_positive"),
    )


class UserPreferences(Base, TimestampMixin):
    __tablename__ = "user_preferences"
    __table_args__ = (UniqueConstraint("user_id", name="uq_preferences_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    theme: Mapped[Theme] = mapped_column(
        SAEnum(Theme), nullable=False, default=Theme.light
    )
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
