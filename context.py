from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from config import Settings, get_settings
from models import (
    SUBSECTION_CATEGORIES,
    Category,
    ReportField,
    Subsection,
    resolve_category,
)
from periods import month_key, parse_month_key
from reports import Budget, GrossProfitRule, ReportDocument, ReportTotals
from services import CategoryRef, ReportService

logger = logging.getLogger(__name__)


class ContextState(str, Enum):
    idle = "idle"
    loading = "loading"
    ready = "ready"
    saving = "saving"


class ReportContext:
    """In-memory copy of the selected month.

    Mutations apply here first, are forwarded to the service, and raise the
    dirty flag. ``flush()`` is the one debounced save for that flag.
    """

    def __init__(
        self, service: ReportService, settings: Optional[Settings] = None
    ) -> None:
        self.service = service
        settings = settings or get_settings()
        self.gross_profit_rule = GrossProfitRule.from_setting(
            settings.gross_profit_rule
        )
        self.state = ContextState.idle
        self.selected_month: Optional[str] = None
        self.document = ReportDocument.default()
        self.source = "defaults"
        self.dirty = False
        self.last_save_ok: Optional[bool] = None

    @property
    def notifications(self):
        return self.service.notifications

    def select_month(self, key: Optional[str] = None) -> None:
        key = key or month_key()
        parse_month_key(key)
        self.selected_month = key
        self.state = ContextState.loading
        report = self.service.load(key)
        if report is None:
            self.document = ReportDocument.default()
            self.source = "defaults"
        else:
            self.document = report.document.copy()
            self.source = report.source
        self.dirty = False
        self.state = ContextState.ready

    def _require_month(self) -> str:
        if self.selected_month is None:
            raise RuntimeError("No month selected")
        return self.selected_month

    # -- derived values ----------------------------------------------------

    @property
    def totals(self) -> ReportTotals:
        return self.document.totals(self.gross_profit_rule)

    def items(self, category: CategoryRef) -> dict[str, float]:
        return self.document.items_for(resolve_category(category))

    @property
    def revenue_items(self) -> dict[str, float]:
        return dict(self.document.items[ReportField.revenue_items])

    @property
    def subcategories(self) -> dict[str, dict[str, str]]:
        return self.document.subcategories

    @property
    def budget(self) -> Optional[Budget]:
        return self.document.budget

    def revenue_sections(self) -> list[dict[str, object]]:
        return [
            {"title": Subsection.kitchen.value, "items": list(self.items(Category.kitchen))},
            {"title": Subsection.bar.value, "items": list(self.items(Category.bar))},
        ]

    def expense_sections(self) -> list[dict[str, object]]:
        return [
            {"title": subsection.value, "items": list(self.items(category))}
            for subsection, category in SUBSECTION_CATEGORIES.items()
            if category.field is not ReportField.revenue_items
        ]

    # -- mutations ---------------------------------------------------------

    def _route_revenue(self, category: CategoryRef, name: str) -> Category:
        resolved = resolve_category(category)
        if resolved.field is ReportField.revenue_items:
            subsection = self.document.subsection_of(resolved, name)
            return Category.kitchen if subsection is Subsection.kitchen else Category.bar
        return resolved

    def update_item(self, category: CategoryRef, name: str, value: float) -> bool:
        month = self._require_month()
        resolved = self._route_revenue(category, name)
        self.document.put_item(resolved, name, value)
        ok = self.service.update_item(month, resolved, name, value)
        self.dirty = True
        return ok

    def rename_item(self, category: CategoryRef, old_name: str, new_name: str) -> bool:
        month = self._require_month()
        if old_name == new_name:
            return True
        clean = new_name.strip()
        if not clean:
            raise ValueError("Item name cannot be empty")
        resolved = self._route_revenue(category, old_name)
        if not self.document.rename_item(resolved, old_name, clean):
            return False
        ok = self.service.rename_item(month, resolved, old_name, new_name)
        self.dirty = True
        return ok

    def add_item(
        self, category: CategoryRef, name: str, subsection: Optional[str] = None
    ) -> bool:
        month = self._require_month()
        resolved = resolve_category(category, subsection)
        clean = name.strip()
        if not clean:
            raise ValueError("Item name cannot be empty")
        self.document.put_item(resolved, clean, 0, label=subsection)
        ok = self.service.add_item(month, resolved, clean, 0, subsection=subsection)
        group = subsection or (resolved.subsection.value if resolved.subsection else None)
        if ok:
            where = f" to {group}" if group else ""
            self.notifications.notify("Item added", f'"{clean}" has been added{where}')
        self.dirty = True
        return ok

    def add_subsection_item(self, subsection: str, name: str) -> bool:
        category = SUBSECTION_CATEGORIES[Subsection(subsection)]
        return self.add_item(category, name, subsection=subsection)

    def delete_item(self, category: CategoryRef, name: str) -> bool:
        month = self._require_month()
        resolved = self._route_revenue(category, name)
        if not self.document.remove_item(resolved, name):
            return False
        ok = self.service.delete_item(month, resolved, name)
        if ok:
            self.notifications.notify("Item deleted", f'"{name}" has been removed')
        self.dirty = True
        return ok

    def update_budget(self, budget: Budget) -> None:
        self._require_month()
        self.document.budget = budget
        self.dirty = True

    def flush(self) -> Optional[bool]:
        """Save once if a mutation flagged the month; ``None`` when idle."""
        if not self.dirty or self.state is not ContextState.ready:
            return None
        month = self._require_month()
        self.state = ContextState.saving
        try:
            ok = self.service.save_document(month, self.document)
        finally:
            self.dirty = False
            self.state = ContextState.ready
        if not ok:
            logger.warning(f"flush: save failed month={month}")
        self.last_save_ok = ok
        return ok
