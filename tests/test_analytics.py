import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from analytics import (
    AnalyticsService,
    achievement_status,
    budget_variance,
    cash_flow_projection,
    labor_analysis,
    product_profitability,
)
from database import Base
from identity import StaticIdentity, User
from models import Category
from notifications import NotificationCenter
from reports import Budget, Report, ReportDocument
from services import ReportService
from storage import LocalReportStore, RemoteReportStore


def _report(month: str = "2025-03") -> Report:
    document = ReportDocument.default()
    document.put_item(Category.kitchen, "Il Classico", 20000)
    document.put_item(Category.kitchen, "Tiramisu", 1500)
    document.put_item(Category.bar, "Espresso", 3500)
    document.put_item(Category.utilities, "Curent", 1800)
    return Report(month, document, source="remote")


def test_achievement_status_thresholds() -> None:
    assert achievement_status(12) == "Excelent"
    assert achievement_status(3) == "Bine"
    assert achievement_status(-4) == "Aproape de țintă"
    assert achievement_status(-15) == "Sub buget"
    assert achievement_status(-12, is_expense=True) == "Excelent"
    assert achievement_status(-2, is_expense=True) == "Bine"
    assert achievement_status(5, is_expense=True) == "Aproape de țintă"
    assert achievement_status(25, is_expense=True) == "Peste buget"
    assert achievement_status(None) is None


def test_budget_variance_against_targets() -> None:
    totals = _report().totals()
    lines = budget_variance(
        totals, Budget(target_revenue=20000, target_expenses=18000, target_profit=0)
    )

    revenue, expenses, profit = lines
    assert revenue.name == "Încasări"
    assert revenue.actual == 25000
    assert revenue.variance == pytest.approx(25.0)
    assert revenue.status == "Excelent"
    assert expenses.actual == 18000
    assert expenses.variance == pytest.approx(0.0)
    assert expenses.status == "Aproape de țintă"
    # a zero target has no meaningful variance
    assert profit.variance is None
    assert profit.status is None


def test_budget_variance_without_budget_only_reports_actuals() -> None:
    lines = budget_variance(_report().totals(), None)
    assert [line.target for line in lines] == [None, None, None]
    assert lines[2].actual == 25000 - 18000


def test_projection_compounds_growth() -> None:
    points = cash_flow_projection("2025-11", 10000, 8000, 0.10, months=3)

    assert [p.month_key for p in points] == ["2025-11", "2025-12", "2026-01"]
    assert points[0].revenue == 10000
    assert points[1].revenue == pytest.approx(11000)
    assert points[1].expenses == pytest.approx(8000 * 1.08)
    assert points[2].profit == pytest.approx(12100 - 8000 * 1.08 * 1.08)


def test_projection_rejects_unsupported_lengths() -> None:
    with pytest.raises(ValueError):
        cash_flow_projection("2025-11", 1, 1, 0.1, months=5)


def test_labor_analysis_shares() -> None:
    labor_pct, breakdown = labor_analysis({"Adi": 3000, "Ioana": 1000}, 20000)

    assert labor_pct == pytest.approx(20.0)
    assert [row.name for row in breakdown] == ["Adi", "Ioana"]
    assert breakdown[0].share == pytest.approx(75.0)
    assert labor_analysis({"Adi": 100}, 0)[0] == 0


def test_product_profitability_ranks_revenue_items() -> None:
    top, sections = product_profitability(_report(), limit=2)

    assert top == [("Il Classico", 20000), ("Espresso", 3500)]
    kitchen, bar = sections
    assert kitchen.title == "Bucatarie"
    assert kitchen.items == [("Il Classico", 20000), ("Tiramisu", 1500)]
    assert kitchen.total == 21500
    assert bar.items == [("Espresso", 3500)]


def test_month_comparison_uses_stored_neighbours_only(tmp_path) -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = ReportService(
            RemoteReportStore(session),
            LocalReportStore(tmp_path / "local.json"),
            StaticIdentity(User(id="owner")),
            NotificationCenter(),
        )
        service.save("2025-02", {"kitchen": {"Il Classico": 10000}})

        comparison = AnalyticsService(service).month_comparison("2025-03", _report())

    assert comparison.previous.revenue == 10000
    assert comparison.next is None
    assert comparison.current.revenue == 25000
    assert comparison.revenue_change == pytest.approx(150.0)
    assert comparison.expenses_change == pytest.approx((18000 - 16200) / 16200 * 100)
