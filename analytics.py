from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from formatters import percent_change
from models import Category, ReportField, Subsection
from periods import shift_month
from reports import Budget, GrossProfitRule, Report, ReportTotals
from services import ReportService

PROJECTION_MONTHS = (3, 6, 12)
TOP_PRODUCTS = 10


@dataclass(frozen=True)
class BudgetLine:
    name: str
    actual: float
    target: Optional[float] = None
    variance: Optional[float] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class MonthFigures:
    month_key: str
    revenue: float
    expenses: float
    profit: float


@dataclass(frozen=True)
class MonthComparison:
    previous: Optional[MonthFigures]
    current: MonthFigures
    next: Optional[MonthFigures]
    revenue_change: Optional[float]
    expenses_change: Optional[float]
    profit_change: Optional[float]


@dataclass(frozen=True)
class ProjectionPoint:
    month_key: str
    revenue: float
    expenses: float
    profit: float


@dataclass(frozen=True)
class LaborShare:
    name: str
    value: float
    share: float


@dataclass
class SectionProducts:
    title: str
    items: list[tuple[str, float]] = field(default_factory=list)
    total: float = 0


def _variance(actual: float, target: float) -> Optional[float]:
    if not target:
        return None
    return (actual - target) / target * 100


def achievement_status(variance: Optional[float], is_expense: bool = False) -> Optional[str]:
    if variance is None:
        return None
    if is_expense:
        if variance <= -10:
            return "Excelent"
        if variance < 0:
            return "Bine"
        if variance < 10:
            return "Aproape de țintă"
        return "Peste buget"
    if variance >= 10:
        return "Excelent"
    if variance > 0:
        return "Bine"
    if variance > -10:
        return "Aproape de țintă"
    return "Sub buget"


def budget_variance(totals: ReportTotals, budget: Optional[Budget]) -> list[BudgetLine]:
    rows = [
        ("Încasări", totals.total_revenue, "target_revenue", False),
        ("Cheltuieli", totals.total_expenses, "target_expenses", True),
        ("Profit", totals.net_profit, "target_profit", False),
    ]
    if budget is None:
        return [BudgetLine(name=name, actual=actual) for name, actual, _, _ in rows]

    lines = []
    for name, actual, attr, is_expense in rows:
        target = getattr(budget, attr)
        variance = _variance(actual, target)
        lines.append(
            BudgetLine(
                name=name,
                actual=actual,
                target=target,
                variance=variance,
                status=achievement_status(variance, is_expense),
            )
        )
    return lines


def cash_flow_projection(
    start_month: str,
    revenue: float,
    expenses: float,
    revenue_growth: float,
    expense_growth: Optional[float] = None,
    months: int = 6,
) -> list[ProjectionPoint]:
    """Compound monthly growth from the given starting figures.

    Growth rates are fractions (0.05 for 5%). Expenses grow at 80% of the
    revenue rate unless told otherwise.
    """
    if months not in PROJECTION_MONTHS:
        raise ValueError(f"Projection length must be one of {PROJECTION_MONTHS}")
    if expense_growth is None:
        expense_growth = revenue_growth * 0.8
    points = []
    for offset in range(months):
        points.append(
            ProjectionPoint(
                month_key=shift_month(start_month, offset),
                revenue=revenue,
                expenses=expenses,
                profit=revenue - expenses,
            )
        )
        revenue *= 1 + revenue_growth
        expenses *= 1 + expense_growth
    return points


def labor_analysis(
    salaries: dict[str, float], revenue: float
) -> tuple[float, list[LaborShare]]:
    total = sum(salaries.values())
    labor_pct = total / revenue * 100 if revenue > 0 else 0
    breakdown = [
        LaborShare(name=name, value=value, share=value / total * 100 if total > 0 else 0)
        for name, value in salaries.items()
    ]
    breakdown.sort(key=lambda row: row.value, reverse=True)
    return labor_pct, breakdown


def product_profitability(
    report: Report, limit: int = TOP_PRODUCTS
) -> tuple[list[tuple[str, float]], list[SectionProducts]]:
    revenue = report.document.items[ReportField.revenue_items]
    top = sorted(revenue.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    sections = []
    for subsection, category in (
        (Subsection.kitchen, Category.kitchen),
        (Subsection.bar, Category.bar),
    ):
        items = sorted(
            ((name, value) for name, value in report.items(category).items() if value > 0),
            key=lambda kv: kv[1],
            reverse=True,
        )
        sections.append(
            SectionProducts(
                title=subsection.value,
                items=items,
                total=sum(value for _, value in items),
            )
        )
    return top, sections


class AnalyticsService:
    def __init__(
        self,
        service: ReportService,
        rule: GrossProfitRule = GrossProfitRule.revenue,
    ) -> None:
        self.service = service
        self.rule = rule

    def _figures(self, key: str, report: Optional[Report]) -> Optional[MonthFigures]:
        if report is None or report.source == "defaults":
            return None
        totals = report.totals(self.rule)
        return MonthFigures(
            month_key=key,
            revenue=totals.total_revenue,
            expenses=totals.total_expenses,
            profit=totals.total_revenue - totals.total_expenses,
        )

    def month_comparison(self, key: str, current: Report) -> MonthComparison:
        totals = current.totals(self.rule)
        current_figures = MonthFigures(
            month_key=key,
            revenue=totals.total_revenue,
            expenses=totals.total_expenses,
            profit=totals.total_revenue - totals.total_expenses,
        )
        prev_key, next_key = shift_month(key, -1), shift_month(key, 1)
        previous = self._figures(prev_key, self.service.load(prev_key))
        following = self._figures(next_key, self.service.load(next_key))
        return MonthComparison(
            previous=previous,
            current=current_figures,
            next=following,
            revenue_change=(
                percent_change(previous.revenue, current_figures.revenue)
                if previous
                else None
            ),
            expenses_change=(
                percent_change(previous.expenses, current_figures.expenses)
                if previous
                else None
            ),
            profit_change=(
                percent_change(previous.profit, current_figures.profit)
                if previous
                else None
            ),
        )

    def budget_variance(self, report: Report) -> list[BudgetLine]:
        return budget_variance(report.totals(self.rule), report.budget)

    def labor(self, report: Report) -> tuple[float, list[LaborShare]]:
        totals = report.totals(self.rule)
        return labor_analysis(report.items(Category.salary), totals.total_revenue)

    def products(
        self, report: Report
    ) -> tuple[list[tuple[str, float]], list[SectionProducts]]:
        return product_profitability(report)

    def projection(
        self,
        report: Report,
        revenue_growth: float,
        expense_growth: Optional[float] = None,
        months: int = 6,
    ) -> list[ProjectionPoint]:
        totals = report.totals(self.rule)
        return cash_flow_projection(
            report.month_key,
            totals.total_revenue,
            totals.total_expenses,
            revenue_growth,
            expense_growth,
            months,
        )
