from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Mapping, Optional, Union

from defaults import TEMPLATE_VERSION
from identity import IdentityProvider
from models import (
    SUBSECTION_CATEGORIES,
    Category,
    ReportField,
    Subsection,
    resolve_category,
)
from notifications import NotificationCenter
from periods import parse_month_key
from reports import Budget, Report, ReportDocument, coerce_amount, coerce_items
from storage import ReportStore, StorageUnavailable

logger = logging.getLogger(__name__)


class CollisionPolicy(str, Enum):
    # Adding or renaming onto an existing name replaces its value.
    overwrite = "overwrite"


CategoryRef = Union[Category, ReportField, str]


def _clean_name(name: str) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValueError("Item name cannot be empty")
    return clean


class ReportService:
    """Reads, heals and writes monthly reports across the remote store and
    the local fallback.

    Every storage-touching method returns ``False``/``None`` on failure and
    posts a notification instead of raising. ``ValueError`` is still raised
    for malformed month keys, unknown categories and empty item names.
    """

    def __init__(
        self,
        remote: ReportStore,
        local: ReportStore,
        identity: IdentityProvider,
        notifications: Optional[NotificationCenter] = None,
        collision_policy: CollisionPolicy = CollisionPolicy.overwrite,
    ) -> None:
        self.remote = remote
        self.local = local
        self.identity = identity
        self.notifications = notifications or NotificationCenter()
        self.collision_policy = collision_policy

    def _user_id(self) -> Optional[str]:
        user = self.identity.current_user()
        return user.id if user else None

    # -- loading -----------------------------------------------------------

    def load(self, month_key: str) -> Optional[Report]:
        parse_month_key(month_key)
        user_id = self._user_id()
        if not user_id:
            return self._load_local(month_key)

        try:
            stored = self.remote.fetch(user_id, month_key)
        except StorageUnavailable as exc:
            logger.warning(f"load: remote unavailable month={month_key} error={exc}")
            self.notifications.warning(
                "Working offline",
                "Could not reach the server, showing the locally saved report.",
            )
            return self._load_local(month_key)

        if stored is None:
            return Report(month_key, ReportDocument.default(), source="defaults")

        document, changed = stored.backfilled()
        if changed:
            logger.info(f"load: backfilling defaults user={user_id} month={month_key}")
            self._write(user_id, month_key, document)
        return Report(month_key, document, source="remote", healed=changed)

    def _load_local(self, month_key: str) -> Optional[Report]:
        try:
            stored = self.local.fetch(None, month_key)
        except StorageUnavailable as exc:
            logger.warning(f"load: local store unreadable month={month_key} error={exc}")
            return None
        if stored is None:
            return None
        document, changed = stored.backfilled()
        return Report(month_key, document, source="local", healed=changed)

    def load_many(self, month_keys: list[str]) -> dict[str, Optional[Report]]:
        return {key: self.load(key) for key in month_keys}

    def month_keys(self) -> list[str]:
        user_id = self._user_id()
        store = self.remote if user_id else self.local
        try:
            return store.month_keys(user_id)
        except StorageUnavailable as exc:
            logger.warning(f"month_keys: store unavailable error={exc}")
            return []

    def is_synced(self, month_key: str) -> bool:
        parse_month_key(month_key)
        user_id = self._user_id()
        if not user_id:
            return False
        try:
            return self.remote.exists(user_id, month_key)
        except StorageUnavailable as exc:
            logger.warning(f"is_synced: remote unavailable month={month_key} error={exc}")
            return False

    # -- saving ------------------------------------------------------------

    def save(
        self,
        month_key: str,
        categories: Mapping[CategoryRef, Mapping[str, float]],
        budget: Optional[Budget] = None,
        subcategories: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> bool:
        """Persist a month from its category maps.

        Kitchen and bar maps may be passed separately; both land in the
        revenue field with their subsection recorded. Every field is merged
        with its defaults before writing.
        """
        parse_month_key(month_key)
        document = ReportDocument.empty()
        if subcategories:
            for group, labels in subcategories.items():
                document.subcategories[group] = {
                    str(name): str(label) for name, label in labels.items()
                }
        for ref, items in categories.items():
            category = resolve_category(ref)
            values = coerce_items(items)
            document.items[category.field].update(values)
            # Only an explicit kitchen/bar map says which revenue group an
            # item belongs to; the shared revenue field does not.
            explicit = str(getattr(ref, "value", ref)) in (
                Category.kitchen.value,
                Category.bar.value,
            )
            labels = document.labels_for(category.field)
            if labels is not None and explicit:
                for name in values:
                    labels.setdefault(name, category.subsection.value)
        document.budget = budget
        return self.save_document(month_key, document)

    def save_document(self, month_key: str, document: ReportDocument) -> bool:
        parse_month_key(month_key)
        merged, _ = document.backfilled()
        return self._write(self._user_id(), month_key, merged)

    def _write(
        self, user_id: Optional[str], month_key: str, document: ReportDocument
    ) -> bool:
        if not user_id:
            try:
                self.local.write(None, month_key, document)
            except StorageUnavailable as exc:
                logger.error(f"save: local write failed month={month_key} error={exc}")
                self.notifications.error(
                    "Save failed", "The report could not be saved on this device."
                )
                return False
            return True

        ok = True
        try:
            self.remote.write(user_id, month_key, document)
        except StorageUnavailable as exc:
            logger.error(f"save: remote write failed month={month_key} error={exc}")
            self.notifications.error(
                "Save failed", "The report could not be saved. Please try again."
            )
            ok = False
        self._mirror(month_key, document)
        return ok

    def _mirror(self, month_key: str, document: ReportDocument) -> None:
        try:
            self.local.write(None, month_key, document)
        except StorageUnavailable as exc:
            logger.warning(f"save: local mirror failed month={month_key} error={exc}")

    # -- item operations ---------------------------------------------------

    def _apply(
        self,
        month_key: str,
        action: str,
        mutate: Callable[[ReportDocument], bool],
    ) -> bool:
        parse_month_key(month_key)
        user_id = self._user_id()
        store = self.remote if user_id else self.local
        try:
            stored = store.fetch(user_id, month_key)
        except StorageUnavailable as exc:
            logger.error(f"{action}: store unavailable month={month_key} error={exc}")
            self.notifications.error(
                "Update failed", "Could not reach storage. Please try again."
            )
            return False

        # A month that was never saved starts from the default template and
        # gets created by this first write.
        document = stored if stored is not None else ReportDocument.default()
        if not mutate(document):
            return False
        return self._write(user_id, month_key, document)

    def add_item(
        self,
        month_key: str,
        category: CategoryRef,
        item_name: str,
        initial_value: float = 0,
        subsection: Optional[str] = None,
    ) -> bool:
        name = _clean_name(item_name)
        resolved = resolve_category(category, subsection)
        value = coerce_amount(initial_value)

        def mutate(document: ReportDocument) -> bool:
            if document.put_item(resolved, name, value, label=subsection):
                logger.info(
                    f"add_item: overwrote item={name!r} field={resolved.field.value} "
                    f"policy={self.collision_policy.value}"
                )
            return True

        return self._apply(month_key, "add_item", mutate)

    def add_subsection_item(
        self,
        month_key: str,
        subsection: str,
        item_name: str,
        initial_value: float = 0,
    ) -> bool:
        category = SUBSECTION_CATEGORIES[Subsection(subsection)]
        return self.add_item(
            month_key, category, item_name, initial_value, subsection=subsection
        )

    def rename_item(
        self,
        month_key: str,
        category: CategoryRef,
        old_name: str,
        new_name: str,
    ) -> bool:
        resolved = resolve_category(category)
        new = _clean_name(new_name)
        if old_name == new:
            return True

        def mutate(document: ReportDocument) -> bool:
            items = document.items[resolved.field]
            if old_name not in items:
                logger.warning(
                    f"rename_item: item={old_name!r} not in field={resolved.field.value}"
                )
                return False
            if new in items:
                logger.info(
                    f"rename_item: overwrote item={new!r} "
                    f"policy={self.collision_policy.value}"
                )
            return document.rename_item(resolved, old_name, new)

        return self._apply(month_key, "rename_item", mutate)

    def update_item(
        self,
        month_key: str,
        category: CategoryRef,
        item_name: str,
        new_value: float,
    ) -> bool:
        resolved = resolve_category(category)
        value = coerce_amount(new_value)

        def mutate(document: ReportDocument) -> bool:
            if item_name not in document.items[resolved.field]:
                logger.warning(
                    f"update_item: item={item_name!r} missing from "
                    f"field={resolved.field.value}, inserting"
                )
            document.put_item(resolved, item_name, value)
            return True

        return self._apply(month_key, "update_item", mutate)

    def delete_item(
        self,
        month_key: str,
        category: CategoryRef,
        item_name: str,
    ) -> bool:
        resolved = resolve_category(category)

        def mutate(document: ReportDocument) -> bool:
            if not document.remove_item(resolved, item_name):
                logger.warning(
                    f"delete_item: item={item_name!r} not in field={resolved.field.value}"
                )
                return False
            return True

        return self._apply(month_key, "delete_item", mutate)

    # -- maintenance -------------------------------------------------------

    def migrate_all(self) -> int:
        """Heal every stored remote report written with an older template.

        Each document is upgraded once; its ``template_version`` records it.
        """
        iter_documents = getattr(self.remote, "iter_documents", None)
        if iter_documents is None:
            return 0
        migrated = 0
        try:
            pending = [
                (user_id, key, document)
                for user_id, key, document in iter_documents()
                if document.template_version < TEMPLATE_VERSION
            ]
            for user_id, key, document in pending:
                healed, changed = document.backfilled()
                self.remote.write(user_id, key, healed)
                migrated += 1
                logger.info(
                    f"migrate_all: user={user_id} month={key} defaults_added={changed}"
                )
        except StorageUnavailable as exc:
            logger.error(f"migrate_all: aborted after {migrated} reports error={exc}")
        return migrated
