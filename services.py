from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from analytics import (
    BudgetStatus,
    DashboardSnapshot,
    TransactionRecord,
    budget_status,
    build_dashboard,
)
from config import get_settings
from csv_utils import export_transactions, parse_csv
from models import Budget, Theme, Transaction, TransactionType, UserPreferences
from periods import month_key
from schemas import BudgetIn, PreferencesIn, TransactionIn

logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


def today_local() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def cents_to_decimal(cents: int) -> Decimal:
    return Decimal(cents) / 100


def to_record(txn: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=txn.id,
        amount=cents_to_decimal(txn.amount_cents),
        type=txn.type.value,
        category=txn.category,
        date=txn.date,
        emotion=txn.emotion.value if txn.emotion else None,
        notes=txn.notes,
        title=txn.title,
    )


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    query: Optional[str] = None
    sort: str = "date"


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def has_any(self) -> bool:
        stmt = select(func.count(Transaction.id)).where(
            Transaction.user_id == self.user_id
        )
        return (self.session.execute(stmt).scalar_one() or 0) > 0

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            title=data.title,
            amount_cents=data.amount_cents,
            type=data.type,
            category=data.category,
            date=data.date,
            notes=data.notes,
            emotion=data.emotion,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} type={txn.type.value} "
            f"amount_cents={txn.amount_cents} date={txn.date.isoformat()}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        if not txn:
            raise ValueError("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        txn.title = data.title
        txn.amount_cents = data.amount_cents
        txn.type = data.type
        txn.category = data.category
        txn.date = data.date
        txn.notes = data.notes
        txn.emotion = data.emotion
        self.session.commit()
        self.session.refresh(txn)
        logger.info(f"transaction_updated: id={txn.id}")
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id}")

    def list_all(self) -> list[Transaction]:
        return self.list(TransactionFilters())

    def list(self, filters: TransactionFilters) -> list[Transaction]:
        stmt = select(Transaction).where(Transaction.user_id == self.user_id)
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category:
            stmt = stmt.where(Transaction.category == filters.category)
        if filters.sort == "amount":
            stmt = stmt.order_by(
                Transaction.amount_cents.desc(),
                Transaction.date.desc(),
                Transaction.id.desc(),
            )
        else:
            stmt = stmt.order_by(Transaction.date.desc(), Transaction.id.desc())
        items = list(self.session.scalars(stmt).all())
        if filters.query and filters.query.strip():
            # SQLite's lower() only folds ASCII
            needle = filters.query.strip().casefold()
            items = [
                txn
                for txn in items
                if needle in txn.title.casefold() or needle in txn.category.casefold()
            ]
        return items

    def records(self) -> list[TransactionRecord]:
        return [to_record(txn) for txn in self.list_all()]

    def categories_in_use(self) -> list[str]:
        stmt = (
            select(Transaction.category)
            .where(Transaction.user_id == self.user_id)
            .group_by(Transaction.category)
            .order_by(Transaction.category.asc())
        )
        return list(self.session.scalars(stmt).all())

    def export_csv(self) -> str:
        return export_transactions(self.list_all())

    def import_csv(self, content: str) -> tuple[int, list[str]]:
        rows, errors = parse_csv(content)
        for row in rows:
            self.session.add(
                Transaction(
                    user_id=self.user_id,
                    title=row.title,
                    amount_cents=row.amount_cents,
                    type=row.type,
                    category=row.category,
                    date=row.date,
                    notes=row.notes,
                    emotion=row.emotion,
                )
            )
        self.session.commit()
        logger.info(f"csv_import: imported={len(rows)} errors={len(errors)}")
        return len(rows), errors


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, month: str) -> Optional[Budget]:
        return self.session.scalar(
            select(Budget).where(Budget.user_id == self.user_id, Budget.month == month)
        )

    def limit_for_month(self, month: str) -> Decimal:
        budget = self.get(month)
        if not budget:
            return Decimal("0")
        return cents_to_decimal(budget.limit_cents)

    def upsert(self, data: BudgetIn) -> Budget:
        existing = self.get(data.month)
        if existing:
            existing.limit_cents = data.limit_cents
            self.session.commit()
            self.session.refresh(existing)
            logger.info(
                f"budget_updated: month={data.month} limit_cents={data.limit_cents}"
            )
            return existing

        budget = Budget(
            user_id=self.user_id, month=data.month, limit_cents=data.limit_cents
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_created: month={data.month} limit_cents={data.limit_cents}"
        )
        return budget

    def status(
        self, today: date, records: Optional[list[TransactionRecord]] = None
    ) -> BudgetStatus:
        if records is None:
            records = TransactionService(self.session, self.user_id).records()
        return budget_status(self.limit_for_month(month_key(today)), records, today)


class PreferenceService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _stored(self) -> Optional[UserPreferences]:
        return self.session.scalar(
            select(UserPreferences).where(UserPreferences.user_id == self.user_id)
        )

    def _defaults(self) -> UserPreferences:
        return UserPreferences(
            user_id=self.user_id,
            theme=Theme.light,
            currency=get_settings().default_currency,
        )

    def get(self) -> UserPreferences:
        return self._stored() or self._defaults()

    def update(self, data: PreferencesIn) -> UserPreferences:
        prefs = self._stored()
        if not prefs:
            prefs = self._defaults()
            self.session.add(prefs)
        if data.theme is not None:
            prefs.theme = data.theme
        if data.currency is not None:
            prefs.currency = data.currency.strip()
        self.session.commit()
        self.session.refresh(prefs)
        logger.info(
            f"preferences_updated: theme={prefs.theme.value} currency={prefs.currency}"
        )
        return prefs

    def toggle_theme(self) -> Theme:
        current = self.get().theme
        new_theme = Theme.dark if current == Theme.light else Theme.light
        return self.update(PreferencesIn(theme=new_theme)).theme


class DashboardService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def snapshot(
        self, today: Optional[date] = None, *, rng: Optional[random.Random] = None
    ) -> DashboardSnapshot:
        today = today or today_local()
        records = TransactionService(self.session, self.user_id).records()
        limit = BudgetService(self.session, self.user_id).limit_for_month(
            month_key(today)
        )
        currency = PreferenceService(self.session, self.user_id).get().currency
        return build_dashboard(
            records, today=today, budget_limit=limit, currency=currency, rng=rng
        )
