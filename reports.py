from __future__ import annotations

import logging
import math
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from defaults import (
    DEFAULT_KITCHEN_ITEMS,
    TEMPLATE_VERSION,
    default_subcategories,
    field_defaults,
    merge_with_defaults,
)
from models import (
    EXPENSE_CATEGORIES,
    FIELD_SUBCATEGORY_GROUPS,
    Category,
    PLReport,
    ReportField,
    SubcategoryGroup,
    Subsection,
)

logger = logging.getLogger(__name__)


class GrossProfitRule(str, Enum):
    revenue = "revenue"
    revenue_less_cogs = "revenue_less_cogs"

    @classmethod
    def from_setting(cls, value: str) -> "GrossProfitRule":
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"gross_profit_rule: unknown value={value!r}, using revenue")
            return cls.revenue


def coerce_amount(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            parsed = float(value.strip().replace(",", "."))
        except ValueError:
            return 0
        return parsed if math.isfinite(parsed) else 0
    return 0


def coerce_items(raw: Any) -> dict[str, float]:
    if not isinstance(raw, Mapping):
        return {}
    return {str(name): coerce_amount(value) for name, value in raw.items()}


def _coerce_subcategories(raw: Any) -> dict[str, dict[str, str]]:
    result: dict[str, dict[str, str]] = {group.value: {} for group in SubcategoryGroup}
    if not isinstance(raw, Mapping):
        return result
    for group in SubcategoryGroup:
        labels = raw.get(group.value)
        if isinstance(labels, Mapping):
            result[group.value] = {str(k): str(v) for k, v in labels.items()}
    return result


@dataclass
class Budget:
    target_revenue: float = 0
    target_expenses: float = 0
    target_profit: float = 0

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Budget"]:
        if not isinstance(data, Mapping):
            return None
        return cls(
            target_revenue=coerce_amount(data.get("targetRevenue")),
            target_expenses=coerce_amount(data.get("targetExpenses")),
            target_profit=coerce_amount(data.get("targetProfit")),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "targetRevenue": self.target_revenue,
            "targetExpenses": self.target_expenses,
            "targetProfit": self.target_profit,
        }


@dataclass
class ReportDocument:
    items: dict[ReportField, dict[str, float]]
    subcategories: dict[str, dict[str, str]] = field(
        default_factory=lambda: {group.value: {} for group in SubcategoryGroup}
    )
    budget: Optional[Budget] = None
    template_version: int = 0

    @classmethod
    def empty(cls) -> "ReportDocument":
        return cls(items={f: {} for f in ReportField})

    @classmethod
    def default(cls) -> "ReportDocument":
        return cls(
            items={f: field_defaults(f) for f in ReportField},
            subcategories=default_subcategories(),
            template_version=TEMPLATE_VERSION,
        )

    @classmethod
    def from_row(cls, row: PLReport) -> "ReportDocument":
        return cls(
            items={f: coerce_items(getattr(row, f.value)) for f in ReportField},
            subcategories=_coerce_subcategories(row.subcategories),
            budget=Budget.from_dict(row.budget),
            template_version=row.template_version or 0,
        )

    def to_row_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {f.value: dict(self.items[f]) for f in ReportField}
        values["subcategories"] = deepcopy(self.subcategories)
        values["budget"] = self.budget.to_dict() if self.budget else None
        values["template_version"] = self.template_version
        return values

    @classmethod
    def from_local(cls, data: Mapping[str, Any]) -> "ReportDocument":
        return cls(
            items={f: coerce_items(data.get(f.document_key)) for f in ReportField},
            subcategories=_coerce_subcategories(data.get("subcategories")),
            budget=Budget.from_dict(data.get("budget")),
            template_version=int(coerce_amount(data.get("templateVersion"))),
        )

    def to_local(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            f.document_key: dict(self.items[f]) for f in ReportField
        }
        data["subcategories"] = deepcopy(self.subcategories)
        data["budget"] = self.budget.to_dict() if self.budget else None
        data["templateVersion"] = self.template_version
        return data

    def copy(self) -> "ReportDocument":
        return ReportDocument(
            items={f: dict(values) for f, values in self.items.items()},
            subcategories=deepcopy(self.subcategories),
            budget=Budget(**vars(self.budget)) if self.budget else None,
            template_version=self.template_version,
        )

    def backfilled(self) -> tuple["ReportDocument", bool]:
        """Return a copy with every default item present and whether any
        default was missing."""
        healed = self.copy()
        changed = False
        for report_field in ReportField:
            merged, missing = merge_with_defaults(
                report_field, self.items.get(report_field, {})
            )
            healed.items[report_field] = merged
            changed = changed or missing

        revenue_labels = healed.subcategories.setdefault(
            SubcategoryGroup.revenue.value, {}
        )
        for name, label in default_subcategories()["revenueItems"].items():
            revenue_labels.setdefault(name, label)
        healed.subcategories.setdefault(SubcategoryGroup.expenses.value, {})
        healed.template_version = max(self.template_version, TEMPLATE_VERSION)
        return healed, changed

    def labels_for(self, report_field: ReportField) -> Optional[dict[str, str]]:
        group = FIELD_SUBCATEGORY_GROUPS.get(report_field)
        if group is None:
            return None
        return self.subcategories.setdefault(group.value, {})

    def subsection_of(self, category: Category, name: str) -> Optional[Subsection]:
        report_field = category.field
        labels = self.labels_for(report_field) or {}
        tracked = labels.get(name)
        if tracked:
            try:
                return Subsection(tracked)
            except ValueError:
                pass
        if report_field is ReportField.revenue_items:
            if name in DEFAULT_KITCHEN_ITEMS:
                return Subsection.kitchen
            return Subsection.bar
        return category.subsection

    def put_item(
        self,
        category: Category,
        name: str,
        value: float,
        label: Optional[str] = None,
    ) -> bool:
        """Insert or overwrite an item; returns True when it replaced one."""
        items = self.items.setdefault(category.field, {})
        replaced = name in items
        items[name] = value
        labels = self.labels_for(category.field)
        if labels is not None:
            if label:
                labels[name] = label
            elif not replaced and category.subsection:
                # Existing items keep their tracked or fallback subsection.
                labels.setdefault(name, category.subsection.value)
        return replaced

    def rename_item(self, category: Category, old_name: str, new_name: str) -> bool:
        items = self.items.setdefault(category.field, {})
        if old_name not in items:
            return False
        if old_name == new_name:
            return True
        resolved = self.subsection_of(category, old_name)
        items[new_name] = items.pop(old_name)
        labels = self.labels_for(category.field)
        if labels is not None:
            label = labels.pop(old_name, None) or (resolved.value if resolved else None)
            if label:
                labels[new_name] = label
        return True

    def remove_item(self, category: Category, name: str) -> bool:
        items = self.items.setdefault(category.field, {})
        if name not in items:
            return False
        del items[name]
        labels = self.labels_for(category.field)
        if labels is not None:
            labels.pop(name, None)
        return True

    def items_for(self, category: Category) -> dict[str, float]:
        values = self.items.get(category.field, {})
        if category not in (Category.kitchen, Category.bar):
            return dict(values)
        return {
            name: value
            for name, value in values.items()
            if self.subsection_of(category, name) is category.subsection
        }

    def totals(
        self, rule: GrossProfitRule = GrossProfitRule.revenue
    ) -> "ReportTotals":
        return ReportTotals.from_document(self, rule)


def calculate_total(items: Mapping[str, float]) -> float:
    return sum(items.values())


@dataclass(frozen=True)
class ReportTotals:
    by_category: dict[Category, float]
    total_revenue: float
    total_cost_of_goods: float
    total_expenses: float
    gross_profit: float
    net_profit: float
    rule: GrossProfitRule = GrossProfitRule.revenue

    @classmethod
    def from_document(
        cls, document: ReportDocument, rule: GrossProfitRule = GrossProfitRule.revenue
    ) -> "ReportTotals":
        by_category = {
            category: calculate_total(document.items_for(category))
            for category in Category
        }
        total_revenue = by_category[Category.kitchen] + by_category[Category.bar]
        total_cogs = by_category[Category.cost_of_goods]
        total_expenses = sum(by_category[c] for c in EXPENSE_CATEGORIES)
        if rule is GrossProfitRule.revenue_less_cogs:
            gross_profit = total_revenue - total_cogs
        else:
            gross_profit = total_revenue
        return cls(
            by_category=by_category,
            total_revenue=total_revenue,
            total_cost_of_goods=total_cogs,
            total_expenses=total_expenses,
            gross_profit=gross_profit,
            net_profit=gross_profit - total_expenses,
            rule=rule,
        )

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            f"total_{category.value}": value
            for category, value in self.by_category.items()
        }
        data.update(
            total_revenue=self.total_revenue,
            total_cost_of_goods=self.total_cost_of_goods,
            total_expenses=self.total_expenses,
            gross_profit=self.gross_profit,
            net_profit=self.net_profit,
            gross_profit_rule=self.rule.value,
        )
        return data


@dataclass
class Report:
    """A month's document together with where it came from.

    ``source`` is ``remote``, ``local`` or ``defaults``; ``healed`` is set
    when a stored document was missing template items and got re-saved.
    """

    month_key: str
    document: ReportDocument
    source: str
    healed: bool = False

    def items(self, category: Category) -> dict[str, float]:
        return self.document.items_for(category)

    @property
    def revenue_items(self) -> dict[str, float]:
        return self.document.items[ReportField.revenue_items]

    @property
    def subcategories(self) -> dict[str, dict[str, str]]:
        return self.document.subcategories

    @property
    def budget(self) -> Optional[Budget]:
        return self.document.budget

    def totals(self, rule: GrossProfitRule = GrossProfitRule.revenue) -> ReportTotals:
        return self.document.totals(rule)
