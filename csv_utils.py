import csv
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Sequence

from models import Transaction
from schemas import TransactionIn

CSV_HEADER = ["Date", "Type", "Title", "Amount", "Category", "Emotion", "Notes"]


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def parse_date(value: str):
    value = value.strip()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return datetime.strptime(value, "%d.%m.%Y").date()


def parse_amount(value: str, *, allow_negative: bool = False) -> int:
    clean = value.strip()
    for symbol in ("₹", "€", "$", "£", " "):
        clean = clean.replace(symbol, "")
    clean = clean.replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    cents = int((amount * 100).quantize(Decimal("1")))
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def format_cents(cents: int) -> str:
    return f"{Decimal(cents) / 100:.2f}"


def parse_csv(content: str) -> tuple[list[TransactionIn], list[str]]:
    reader = csv.DictReader(StringIO(content))
    rows: list[TransactionIn] = []
    errors: list[str] = []
    for idx, raw in enumerate(reader, start=1):
        try:
            type_raw = (raw.get("Type") or "").strip().lower()
            rows.append(
                TransactionIn(
                    title=(raw.get("Title") or "").strip(),
                    amount_cents=parse_amount(raw.get("Amount") or "0"),
                    type=type_raw,
                    category=(raw.get("Category") or "").strip(),
                    date=parse_date(raw.get("Date") or ""),
                    notes=(raw.get("Notes") or "").strip() or None,
                    emotion=(raw.get("Emotion") or "").strip().lower() or None,
                )
            )
        except Exception as exc:
            errors.append(f"Row {idx}: {exc}")
    return rows, errors


def export_transactions(transactions: Sequence[Transaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for txn in transactions:
        writer.writerow(
            [
                txn.date.isoformat(),
                txn.type.value,
                sanitize_csv_value(txn.title or ""),
                format_cents(txn.amount_cents),
                sanitize_csv_value(txn.category or ""),
                txn.emotion.value if txn.emotion else "",
                sanitize_csv_value(txn.notes or ""),
            ]
        )
    return output.getvalue()
