from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import PLReport
from reports import ReportDocument

logger = logging.getLogger(__name__)

LOCAL_STORE_KEY = "plReports"


class StorageUnavailable(RuntimeError):
    """The backing store could not be reached or read."""


class ReportStore(Protocol):
    def fetch(self, user_id: Optional[str], month_key: str) -> Optional[ReportDocument]:
        ...

    def write(
        self, user_id: Optional[str], month_key: str, document: ReportDocument
    ) -> None:
        ...

    def exists(self, user_id: Optional[str], month_key: str) -> bool:
        ...

    def month_keys(self, user_id: Optional[str]) -> list[str]:
        ...


class RemoteReportStore:
    """Report rows in the relational backend, one per (user, month)."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _row(self, user_id: str, month_key: str) -> Optional[PLReport]:
        return self.session.scalar(
            select(PLReport).where(
                PLReport.user_id == user_id, PLReport.date == month_key
            )
        )

    def fetch(self, user_id: Optional[str], month_key: str) -> Optional[ReportDocument]:
        if not user_id:
            return None
        try:
            row = self._row(user_id, month_key)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageUnavailable(f"Failed to fetch report {month_key}") from exc
        if row is None:
            return None
        return ReportDocument.from_row(row)

    def write(
        self, user_id: Optional[str], month_key: str, document: ReportDocument
    ) -> None:
        if not user_id:
            raise StorageUnavailable("Remote store requires an authenticated user")
        values = document.to_row_values()
        try:
            # Check-then-act; two sessions saving the same month can race.
            row = self._row(user_id, month_key)
            if row is None:
                row = PLReport(user_id=user_id, date=month_key, **values)
                self.session.add(row)
                action = "insert"
            else:
                for key, value in values.items():
                    setattr(row, key, value)
                action = "update"
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageUnavailable(f"Failed to write report {month_key}") from exc
        logger.info(f"remote_write: action={action} user={user_id} month={month_key}")

    def exists(self, user_id: Optional[str], month_key: str) -> bool:
        if not user_id:
            return False
        try:
            return self._row(user_id, month_key) is not None
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageUnavailable(f"Failed to check report {month_key}") from exc

    def month_keys(self, user_id: Optional[str]) -> list[str]:
        if not user_id:
            return []
        try:
            return list(
                self.session.scalars(
                    select(PLReport.date)
                    .where(PLReport.user_id == user_id)
                    .order_by(PLReport.date)
                )
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageUnavailable("Failed to list report months") from exc

    def iter_documents(self) -> Iterator[tuple[str, str, ReportDocument]]:
        try:
            rows = self.session.scalars(
                select(PLReport).order_by(PLReport.user_id, PLReport.date)
            ).all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageUnavailable("Failed to list reports") from exc
        for row in rows:
            yield row.user_id, row.date, ReportDocument.from_row(row)


class LocalReportStore:
    """JSON file mirroring browser-local storage.

    The file holds a single key mapping ``YYYY-MM`` to a camelCase report.
    It is not scoped by user.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"Cannot read local store {self.path}") from exc
        reports = payload.get(LOCAL_STORE_KEY) if isinstance(payload, dict) else None
        return reports if isinstance(reports, dict) else {}

    def _save(self, reports: dict[str, Any]) -> None:
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=".local_reports", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(
                    {LOCAL_STORE_KEY: reports},
                    handle,
                    ensure_ascii=False,
                    indent=2,
                    allow_nan=False,
                )
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageUnavailable(f"Cannot write local store {self.path}") from exc

    def fetch(self, user_id: Optional[str], month_key: str) -> Optional[ReportDocument]:
        data = self._load().get(month_key)
        if not isinstance(data, dict):
            return None
        return ReportDocument.from_local(data)

    def write(
        self, user_id: Optional[str], month_key: str, document: ReportDocument
    ) -> None:
        reports = self._load()
        reports[month_key] = document.to_local()
        self._save(reports)

    def exists(self, user_id: Optional[str], month_key: str) -> bool:
        return month_key in self._load()

    def month_keys(self, user_id: Optional[str]) -> list[str]:
        return sorted(self._load())
