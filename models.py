from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class ReportField(str, Enum):
    revenue_items = "revenue_items"
    cost_of_goods_items = "cost_of_goods_items"
    salary_expenses = "salary_expenses"
    distributor_expenses = "distributor_expenses"
    utilities_expenses = "utilities_expenses"
    operational_expenses = "operational_expenses"
    other_expenses = "other_expenses"

    @property
    def document_key(self) -> str:
        head, *rest = self.value.split("_")
        return head + "".join(part.capitalize() for part in rest)


class Category(str, Enum):
    kitchen = "kitchen"
    bar = "bar"
    cost_of_goods = "cost_of_goods"
    salary = "salary"
    distributor = "distributor"
    utilities = "utilities"
    operational = "operational"
    other = "other"

    @property
    def field(self) -> ReportField:
        return CATEGORY_FIELDS[self]

    @property
    def subsection(self) -> Optional["Subsection"]:
        return CATEGORY_SUBSECTIONS.get(self)


class Subsection(str, Enum):
    kitchen = "Bucatarie"
    bar = "Bar"
    utilities = "Utilitati"
    operational = "Operationale"
    other = "Alte Cheltuieli"


class SubcategoryGroup(str, Enum):
    revenue = "revenueItems"
    expenses = "expenses"


# Kitchen and bar share one physical map; the subcategory table tells them apart.
CATEGORY_FIELDS: dict[Category, ReportField] = {
    Category.kitchen: ReportField.revenue_items,
    Category.bar: ReportField.revenue_items,
    Category.cost_of_goods: ReportField.cost_of_goods_items,
    Category.salary: ReportField.salary_expenses,
    Category.distributor: ReportField.distributor_expenses,
    Category.utilities: ReportField.utilities_expenses,
    Category.operational: ReportField.operational_expenses,
    Category.other: ReportField.other_expenses,
}

CATEGORY_SUBSECTIONS: dict[Category, Subsection] = {
    Category.kitchen: Subsection.kitchen,
    Category.bar: Subsection.bar,
    Category.utilities: Subsection.utilities,
    Category.operational: Subsection.operational,
    Category.other: Subsection.other,
}

SUBSECTION_CATEGORIES: dict[Subsection, Category] = {
    subsection: category for category, subsection in CATEGORY_SUBSECTIONS.items()
}

FIELD_SUBCATEGORY_GROUPS: dict[ReportField, SubcategoryGroup] = {
    ReportField.revenue_items: SubcategoryGroup.revenue,
    ReportField.utilities_expenses: SubcategoryGroup.expenses,
    ReportField.operational_expenses: SubcategoryGroup.expenses,
    ReportField.other_expenses: SubcategoryGroup.expenses,
}

EXPENSE_CATEGORIES = (
    Category.salary,
    Category.distributor,
    Category.utilities,
    Category.operational,
    Category.other,
)


def resolve_category(
    value: "Category | ReportField | str", subsection: Optional[str] = None
) -> Category:
    """Map a logical category, a physical field name or its camelCase
    document key onto a logical category.

    The revenue field is ambiguous; the subsection picks kitchen or bar and
    anything other than ``Bucatarie`` lands in bar.
    """
    if isinstance(value, Category):
        return value
    raw = value.value if isinstance(value, ReportField) else str(value).strip()
    try:
        return Category(raw)
    except ValueError:
        pass

    field = None
    for candidate in ReportField:
        if raw in (candidate.value, candidate.document_key):
            field = candidate
            break
    if field is None:
        raise ValueError(f"Unknown category: {value}")

    if field is ReportField.revenue_items:
        if subsection == Subsection.kitchen.value:
            return Category.kitchen
        return Category.bar
    return next(cat for cat, f in CATEGORY_FIELDS.items() if f is field)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class PLReport(Base, TimestampMixin):
    __tablename__ = "pl_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[str] = mapped_column(String(7), nullable=False)
    revenue_items: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    cost_of_goods_items: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict
    )
    salary_expenses: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    distributor_expenses: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict
    )
    utilities_expenses: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict
    )
    operational_expenses: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict
    )
    other_expenses: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    subcategories: Mapped[Optional[dict]] = mapped_column(JSON)
    budget: Mapped[Optional[dict]] = mapped_column(JSON)
    template_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_pl_report_user_date"),
        Index("ix_pl_reports_user", "user_id"),
    )
