import logging
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from analytics import (
    BudgetTier,
    TransactionRecord,
    build_dashboard,
    category_breakdown,
    format_amount,
    generate_insights,
    monthly_series,
)
from config import get_settings
from csrf import generate_csrf_token, validate_csrf_token
from csv_utils import parse_amount
from database import SessionLocal
from models import CATEGORIES, Emotion, Theme, TransactionType
from periods import month_key
from schemas import BudgetIn, DashboardPreviewIn, PreferencesIn, TransactionIn
from services import (
    BudgetService,
    DashboardService,
    PreferenceService,
    TransactionFilters,
    TransactionService,
    to_record,
    today_local,
)

settings = get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title="Personal Finance Dashboard")
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def format_money(value, currency: str = "") -> str:
    return f"{currency}{format_amount(Decimal(str(value)))}"


templates.env.filters["money"] = format_money
templates.env.globals["csrf_token"] = generate_csrf_token
templates.env.globals["TransactionType"] = TransactionType
templates.env.globals["Emotion"] = Emotion
templates.env.globals["BudgetTier"] = BudgetTier
templates.env.globals["CATEGORIES"] = CATEGORIES


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def filters_from_request(request: Request) -> TransactionFilters:
    type_param = request.query_params.get("type")
    txn_type = None
    if type_param:
        try:
            txn_type = TransactionType(type_param)
        except ValueError:
            txn_type = None
    sort = request.query_params.get("sort", "date")
    return TransactionFilters(
        type=txn_type,
        category=request.query_params.get("category") or None,
        query=request.query_params.get("q") or None,
        sort=sort if sort in ("date", "amount") else "date",
    )


def render(request: Request, template: str, context: dict[str, object]) -> HTMLResponse:
    return templates.TemplateResponse(request, template, context)


def require_csrf(form) -> None:
    if not validate_csrf_token(str(form.get("csrf_token", ""))):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")


def transaction_payload_from_form(form) -> TransactionIn:
    date_raw = str(form.get("date") or "").strip()
    return TransactionIn(
        title=str(form.get("title") or ""),
        amount_cents=parse_amount(str(form.get("amount") or "")),
        type=str(form.get("type") or ""),
        category=str(form.get("category") or ""),
        date=date.fromisoformat(date_raw) if date_raw else today_local(),
        notes=form.get("notes"),
        emotion=form.get("emotion") or None,
    )


def after_write(request: Request) -> Response:
    headers = {"HX-Trigger": "transactions-changed"}
    if request.headers.get("HX-Request"):
        return Response(status_code=204, headers=headers)
    return RedirectResponse(
        url=request.app.url_path_for("dashboard"), status_code=303, headers=headers
    )


@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request, db: Session = Depends(get_db)):
    filters = filters_from_request(request)
    txn_service = TransactionService(db)
    snapshot = DashboardService(db).snapshot()
    prefs = PreferenceService(db).get()
    return render(
        request,
        "dashboard.html",
        {
            "snapshot": snapshot,
            "prefs": prefs,
            "theme": prefs.theme.value,
            "currency": prefs.currency,
            "filters": filters,
            "transactions": txn_service.list(filters),
            "has_transactions": txn_service.has_any(),
            "categories_in_use": txn_service.categories_in_use(),
            "today": today_local(),
        },
    )


@app.post("/transactions")
async def create_transaction(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    require_csrf(form)
    try:
        data = transaction_payload_from_form(form)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    TransactionService(db).create(data)
    return after_write(request)


@app.get("/transactions/export.csv")
def export_transactions_endpoint(db: Session = Depends(get_db)):
    content = TransactionService(db).export_csv()
    filename = f"transactions-{today_local().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/transactions/import")
async def import_transactions(
    request: Request,
    file: UploadFile = File(...),
    csrf_token: str = Form(""),
    db: Session = Depends(get_db),
):
    if not validate_csrf_token(csrf_token):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    raw = await file.read()
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        logger.warning(f"csv_import_rejected: filename={file.filename} reason=encoding")
        raise HTTPException(status_code=400, detail="File must be UTF-8") from exc
    imported, errors = TransactionService(db).import_csv(content)
    if "text/html" in request.headers.get("accept", ""):
        return render(
            request,
            "import_result.html",
            {
                "imported": imported,
                "errors": errors,
                "theme": PreferenceService(db).get().theme.value,
            },
        )
    return {"imported": imported, "errors": errors}


@app.get("/transactions/{transaction_id}/edit", response_class=HTMLResponse)
def edit_transaction_page(
    transaction_id: int, request: Request, db: Session = Depends(get_db)
):
    try:
        txn = TransactionService(db).get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return render(
        request,
        "transaction_edit.html",
        {
            "txn": txn,
            "amount": txn.amount_cents / 100,
            "theme": PreferenceService(db).get().theme.value,
        },
    )


@app.post("/transactions/{transaction_id}/edit")
async def edit_transaction_submit(
    transaction_id: int, request: Request, db: Session = Depends(get_db)
):
    form = await request.form()
    require_csrf(form)
    try:
        data = transaction_payload_from_form(form)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        TransactionService(db).update(transaction_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return after_write(request)


@app.post("/transactions/{transaction_id}/delete")
async def delete_transaction(
    transaction_id: int, request: Request, db: Session = Depends(get_db)
):
    form = await request.form()
    require_csrf(form)
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return after_write(request)


@app.post("/budget")
async def set_budget(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    require_csrf(form)
    try:
        data = BudgetIn(
            month=str(form.get("month") or month_key(today_local())),
            limit_cents=parse_amount(str(form.get("amount") or "")),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    BudgetService(db).upsert(data)
    return RedirectResponse(url="/", status_code=303)


@app.post("/preferences")
async def update_preferences(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    require_csrf(form)
    try:
        data = PreferencesIn(
            theme=Theme(form["theme"]) if form.get("theme") else None,
            currency=str(form.get("currency") or "").strip() or None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    PreferenceService(db).update(data)
    return RedirectResponse(url="/", status_code=303)


@app.post("/preferences/theme")
async def toggle_theme(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    require_csrf(form)
    theme = PreferenceService(db).toggle_theme()
    if request.headers.get("HX-Request"):
        return {"theme": theme.value}
    return RedirectResponse(url="/", status_code=303)


@app.get("/api/categories")
def api_categories():
    return {txn_type.value: names for txn_type, names in CATEGORIES.items()}


@app.get("/api/transactions")
def api_transactions(request: Request, db: Session = Depends(get_db)):
    filters = filters_from_request(request)
    items = TransactionService(db).list(filters)
    return [asdict(to_record(txn)) for txn in items]


@app.get("/api/dashboard")
def api_dashboard(db: Session = Depends(get_db)):
    return DashboardService(db).snapshot()


@app.post("/api/dashboard/preview")
def api_dashboard_preview(data: DashboardPreviewIn, db: Session = Depends(get_db)):
    """Snapshot over caller-supplied rows; nothing is stored."""
    try:
        records = [TransactionRecord.from_mapping(row) for row in data.transactions]
    except KeyError as exc:
        raise HTTPException(status_code=400, detail=f"Missing field {exc}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    currency = data.currency
    if currency is None:
        currency = PreferenceService(db).get().currency
    return build_dashboard(
        records,
        today=data.today or today_local(),
        budget_limit=data.budget_limit,
        currency=currency,
    )


@app.get("/api/category-breakdown")
def api_category_breakdown(db: Session = Depends(get_db)):
    return category_breakdown(TransactionService(db).records())


@app.get("/api/monthly-trends")
def api_monthly_trends(db: Session = Depends(get_db)):
    return monthly_series(TransactionService(db).records(), today_local())


@app.get("/api/budget")
def api_budget(db: Session = Depends(get_db)):
    status = BudgetService(db).status(today_local())
    payload = asdict(status)
    payload["bar_percentage"] = status.bar_percentage
    return payload


@app.get("/api/insights")
def api_insights(db: Session = Depends(get_db)):
    currency = PreferenceService(db).get().currency
    return generate_insights(
        TransactionService(db).records(), today_local(), currency=currency
    )


def main(host: str = "0.0.0.0", port: int = 8000, reload: Optional[bool] = False):
    import uvicorn

    uvicorn.run("main:app", host=host, port=port, reload=bool(reload))


if __name__ == "__main__":
    main()
