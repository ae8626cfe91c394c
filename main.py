import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from sqlalchemy.orm import Session

from analytics import AnalyticsService
from config import get_settings
from database import get_session, init_db
from identity import SESSION_COOKIE, SignedCookieIdentity
from models import Category, resolve_category
from notifications import NotificationCenter
from periods import parse_month_key
from reports import GrossProfitRule, Report, ReportDocument
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    ItemIn,
    ItemRenameIn,
    ItemUpdateIn,
    NotificationOut,
    ReportIn,
    ReportOut,
    TotalsOut,
)
from services import ReportService
from storage import LocalReportStore, RemoteReportStore

app = FastAPI(title="Restaurant P&L Reports")

notification_center = NotificationCenter()
scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    init_db()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def gross_profit_rule() -> GrossProfitRule:
    return GrossProfitRule.from_setting(get_settings().gross_profit_rule)


def get_identity(request: Request) -> SignedCookieIdentity:
    return SignedCookieIdentity(request.cookies.get(SESSION_COOKIE))


def get_notifications() -> NotificationCenter:
    return notification_center


def get_report_service(
    session: Session = Depends(get_session),
    identity: SignedCookieIdentity = Depends(get_identity),
    notifications: NotificationCenter = Depends(get_notifications),
) -> ReportService:
    settings = get_settings()
    return ReportService(
        RemoteReportStore(session),
        LocalReportStore(settings.local_store_path),
        identity,
        notifications,
    )


def month_or_400(month: str) -> str:
    try:
        parse_month_key(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return month


def category_or_400(category: str, subsection: Optional[str] = None) -> Category:
    try:
        return resolve_category(category, subsection)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def storage_failure(detail: str, month: str) -> HTTPException:
    logging.warning(f"api_write_failed: month={month} detail={detail!r}")
    return HTTPException(status_code=503, detail=detail)


def load_or_default(service: ReportService, month: str) -> Report:
    report = service.load(month)
    if report is None:
        return Report(month, ReportDocument.default(), source="defaults")
    return report


def report_out(report: Report) -> ReportOut:
    totals = report.totals(gross_profit_rule())
    return ReportOut(
        month=report.month_key,
        source=report.source,
        healed=report.healed,
        items={
            field.document_key: dict(values)
            for field, values in report.document.items.items()
        },
        subcategories=report.subcategories,
        budget=report.budget.to_dict() if report.budget else None,
        totals=TotalsOut(**totals.as_dict()),
    )


@app.get("/api/reports/{month}", response_model=ReportOut)
def get_report(month: str, service: ReportService = Depends(get_report_service)):
    month = month_or_400(month)
    return report_out(load_or_default(service, month))


@app.put("/api/reports/{month}", response_model=ReportOut)
def put_report(
    month: str,
    payload: ReportIn,
    service: ReportService = Depends(get_report_service),
):
    month = month_or_400(month)
    for key in payload.categories:
        category_or_400(key)
    budget = payload.budget.to_budget() if payload.budget else None
    if not service.save(month, payload.categories, budget, payload.subcategories):
        raise storage_failure("Report could not be saved", month)
    return report_out(load_or_default(service, month))


@app.put("/api/reports/{month}/budget", response_model=ReportOut)
def put_budget(
    month: str,
    payload: BudgetIn,
    service: ReportService = Depends(get_report_service),
):
    month = month_or_400(month)
    document = load_or_default(service, month).document
    document.budget = payload.to_budget()
    if not service.save_document(month, document):
        raise storage_failure("Budget could not be saved", month)
    return report_out(load_or_default(service, month))


@app.post("/api/reports/{month}/items", response_model=ReportOut, status_code=201)
def add_item(
    month: str,
    payload: ItemIn,
    service: ReportService = Depends(get_report_service),
):
    month = month_or_400(month)
    category = category_or_400(payload.category, payload.subsection)
    try:
        ok = service.add_item(
            month, category, payload.name, payload.value, payload.subsection
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not ok:
        raise storage_failure("Item could not be saved", month)
    return report_out(load_or_default(service, month))


@app.patch("/api/reports/{month}/items/{category}/{name}", response_model=ReportOut)
def update_item(
    month: str,
    category: str,
    name: str,
    payload: ItemUpdateIn,
    service: ReportService = Depends(get_report_service),
):
    month = month_or_400(month)
    resolved = category_or_400(category)
    if not service.update_item(month, resolved, name, payload.value):
        raise storage_failure("Item could not be saved", month)
    return report_out(load_or_default(service, month))


def _require_item(service: ReportService, month: str, category: Category, name: str):
    report = load_or_default(service, month)
    if name not in report.document.items[category.field]:
        raise HTTPException(status_code=404, detail=f"Item {name!r} not found")


@app.post(
    "/api/reports/{month}/items/{category}/{name}/rename", response_model=ReportOut
)
def rename_item(
    month: str,
    category: str,
    name: str,
    payload: ItemRenameIn,
    service: ReportService = Depends(get_report_service),
):
    month = month_or_400(month)
    resolved = category_or_400(category)
    _require_item(service, month, resolved, name)
    try:
        ok = service.rename_item(month, resolved, name, payload.new_name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not ok:
        raise storage_failure("Item could not be renamed", month)
    return report_out(load_or_default(service, month))


@app.delete("/api/reports/{month}/items/{category}/{name}", response_model=ReportOut)
def delete_item(
    month: str,
    category: str,
    name: str,
    service: ReportService = Depends(get_report_service),
):
    month = month_or_400(month)
    resolved = category_or_400(category)
    _require_item(service, month, resolved, name)
    if not service.delete_item(month, resolved, name):
        raise storage_failure("Item could not be deleted", month)
    return report_out(load_or_default(service, month))


@app.get("/api/reports/{month}/sync")
def sync_status(month: str, service: ReportService = Depends(get_report_service)):
    month = month_or_400(month)
    return {"month": month, "synced": service.is_synced(month)}


@app.get("/api/reports/{month}/budget-variance")
def get_budget_variance(
    month: str, service: ReportService = Depends(get_report_service)
):
    month = month_or_400(month)
    report = load_or_default(service, month)
    lines = AnalyticsService(service, gross_profit_rule()).budget_variance(report)
    return {"month": month, "has_budget": report.budget is not None, "lines": lines}


@app.get("/api/reports/{month}/comparison")
def get_comparison(month: str, service: ReportService = Depends(get_report_service)):
    month = month_or_400(month)
    report = load_or_default(service, month)
    return AnalyticsService(service, gross_profit_rule()).month_comparison(
        month, report
    )


@app.get("/api/reports/{month}/labor")
def get_labor(month: str, service: ReportService = Depends(get_report_service)):
    month = month_or_400(month)
    report = load_or_default(service, month)
    labor_pct, breakdown = AnalyticsService(service, gross_profit_rule()).labor(report)
    return {"month": month, "labor_percentage": labor_pct, "breakdown": breakdown}


@app.get("/api/reports/{month}/products")
def get_products(month: str, service: ReportService = Depends(get_report_service)):
    month = month_or_400(month)
    report = load_or_default(service, month)
    top, sections = AnalyticsService(service, gross_profit_rule()).products(report)
    return {
        "month": month,
        "top": [{"name": name, "value": value} for name, value in top],
        "sections": sections,
    }


@app.get("/api/reports/{month}/projection")
def get_projection(
    month: str,
    revenue_growth: float = 0.05,
    expense_growth: Optional[float] = None,
    months: int = 6,
    service: ReportService = Depends(get_report_service),
):
    month = month_or_400(month)
    report = load_or_default(service, month)
    try:
        points = AnalyticsService(service, gross_profit_rule()).projection(
            report, revenue_growth, expense_growth, months
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"month": month, "points": points}


@app.get("/api/notifications", response_model=list[NotificationOut])
def list_notifications(
    notifications: NotificationCenter = Depends(get_notifications),
):
    return [
        NotificationOut(
            id=n.id, title=n.title, description=n.description, variant=n.variant
        )
        for n in notifications.pending()
    ]


@app.post("/api/notifications/{notification_id}/dismiss")
def dismiss_notification(
    notification_id: int,
    notifications: NotificationCenter = Depends(get_notifications),
):
    if not notifications.dismiss(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"dismissed": notification_id}
