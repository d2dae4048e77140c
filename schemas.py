from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from rapidfuzz.distance import Levenshtein

from models import CATEGORIES, Emotion, Theme, TransactionType
from periods import month_key, parse_month_key


def resolve_category(name: str, txn_type: TransactionType) -> str:
    """Map free-text input onto the fixed category names for ``txn_type``.

    Exact and case-insensitive matches win; otherwise a single candidate within
    one edit is accepted.
    """
    vocabulary = CATEGORIES[TransactionType(txn_type)]
    cleaned = (name or "").strip()
    if cleaned in vocabulary:
        return cleaned
    lowered = cleaned.lower()
    for candidate in vocabulary:
        if candidate.lower() == lowered:
            return candidate

    best_distance: Optional[int] = None
    best: list[str] = []
    for candidate in vocabulary:
        dist = int(Levenshtein.distance(lowered, candidate.lower()))
        if best_distance is None or dist < best_distance:
            best_distance = dist
            best = [candidate]
        elif dist == best_distance:
            best.append(candidate)
    if best_distance is not None and best_distance <= 1 and len(best) == 1:
        return best[0]
    if best_distance is not None and best_distance <= 1:
        raise ValueError(
            f"Category '{cleaned}' is ambiguous; matches: {', '.join(sorted(best))}"
        )
    raise ValueError(
        f"Unknown {TransactionType(txn_type).value} category '{cleaned}'; "
        f"expected one of: {', '.join(vocabulary)}"
    )


class TransactionIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    amount_cents: int = Field(..., ge=0)
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=50)
    date: date
    notes: Optional[str] = Field(default=None, max_length=1000)
    emotion: Optional[Emotion] = None

    @field_validator("title", "category", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("notes", "emotion", mode="before")
    @classmethod
    def _blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _category_matches_type(self) -> "TransactionIn":
        self.category = resolve_category(self.category, self.type)
        return self


class BudgetIn(BaseModel):
    month: str = Field(..., min_length=7, max_length=7)
    limit_cents: int = Field(..., gt=0)

    @field_validator("month")
    @classmethod
    def _normalize_month(cls, value: str) -> str:
        return month_key(parse_month_key(value))


class PreferencesIn(BaseModel):
    theme: Optional[Theme] = None
    currency: Optional[str] = Field(default=None, min_length=1, max_length=8)


class DashboardPreviewIn(BaseModel):
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    budget_limit: Decimal = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    today: Optional[date] = None
    currency: Optional[str] = Field(default=None, max_length=8)
