import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from defaults import DEFAULT_BAR_ITEMS, DEFAULT_KITCHEN_ITEMS, TEMPLATE_VERSION, field_defaults
from identity import StaticIdentity, User
from models import Category, PLReport, ReportField
from notifications import NotificationCenter
from reports import Budget, ReportDocument
from services import ReportService
from storage import LocalReportStore, RemoteReportStore, StorageUnavailable


class UnreachableStore:
    def fetch(self, user_id, month_key):
        raise StorageUnavailable("remote offline")

    def write(self, user_id, month_key, document):
        raise StorageUnavailable("remote offline")

    def exists(self, user_id, month_key):
        raise StorageUnavailable("remote offline")

    def month_keys(self, user_id):
        raise StorageUnavailable("remote offline")


def _service(session, tmp_path, user="owner", remote=None) -> ReportService:
    return ReportService(
        remote if remote is not None else RemoteReportStore(session),
        LocalReportStore(tmp_path / "local.json"),
        StaticIdentity(User(id=user) if user else None),
        NotificationCenter(),
    )


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def test_unsaved_month_loads_default_template(tmp_path) -> None:
    with _session() as session:
        report = _service(session, tmp_path).load("2025-03")

    assert report.source == "defaults"
    assert report.revenue_items == {**DEFAULT_KITCHEN_ITEMS, **DEFAULT_BAR_ITEMS}
    assert report.items(Category.salary) == {
        "Adi": 4050,
        "Ioana": 4050,
        "Andreea": 4050,
        "Victoria": 4050,
    }
    totals = report.totals()
    assert totals.total_revenue == 0
    assert totals.total_expenses == 16200
    assert totals.net_profit == -16200


def test_load_backfills_every_default_and_stored_values_win(tmp_path) -> None:
    with _session() as session:
        stored = ReportDocument.empty()
        stored.items[ReportField.salary_expenses] = {"Adi": 5200}
        stored.items[ReportField.revenue_items] = {"Espresso": 300, "Focaccia": 40}
        RemoteReportStore(session).write("owner", "2025-03", stored)

        report = _service(session, tmp_path).load("2025-03")

        assert report.source == "remote"
        assert report.healed is True
        for report_field in ReportField:
            for name in field_defaults(report_field):
                assert name in report.document.items[report_field]
        assert report.items(Category.salary)["Adi"] == 5200
        assert report.revenue_items["Espresso"] == 300
        assert report.revenue_items["Focaccia"] == 40

        # the healed document was written back
        row = session.query(PLReport).one()
        assert row.salary_expenses["Ioana"] == 4050
        assert row.template_version == TEMPLATE_VERSION


def test_load_of_complete_document_does_not_rewrite(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        assert service.save("2025-03", {})

        report = service.load("2025-03")

    assert report.source == "remote"
    assert report.healed is False


def test_save_subset_then_load_yields_full_merged_report(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        ok = service.save(
            "2025-03",
            {
                Category.salary: {"Adi": 5000},
                "kitchen": {"Focaccia": 120},
                "bar": {"Negroni": 45},
            },
            budget=Budget(target_revenue=40000, target_expenses=20000),
        )
        report = service.load("2025-03")

    assert ok is True
    salary = report.items(Category.salary)
    assert salary["Adi"] == 5000
    assert salary["Ioana"] == 4050
    assert report.items(Category.kitchen)["Focaccia"] == 120
    assert "Il Classico" in report.items(Category.kitchen)
    assert report.items(Category.bar)["Negroni"] == 45
    assert report.subcategories["revenueItems"]["Focaccia"] == "Bucatarie"
    assert report.subcategories["revenueItems"]["Negroni"] == "Bar"
    assert report.budget.target_revenue == 40000


def test_save_mirrors_into_local_store(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        service.save("2025-03", {"salaryExpenses": {"Adi": 4800}})

    local = LocalReportStore(tmp_path / "local.json").fetch(None, "2025-03")
    assert local.items[ReportField.salary_expenses]["Adi"] == 4800


def test_update_item_then_load(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        assert service.update_item("2025-03", "salaryExpenses", "Adi", 4500)

        report = service.load("2025-03")

    assert report.items(Category.salary)["Adi"] == 4500
    assert report.totals().total_expenses == 16650


def test_update_of_missing_item_inserts_it(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        assert service.update_item("2025-03", Category.other, "Reparatii", 700)

        report = service.load("2025-03")

    assert report.items(Category.other) == {"Reparatii": 700}


def test_add_then_rename_keeps_kitchen_label(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        assert service.add_item("2025-03", "revenueItems", "Croissant", 0, "Bucatarie")
        assert service.rename_item(
            "2025-03", "revenueItems", "Croissant", "Croissant Classic"
        )

        report = service.load("2025-03")

    assert report.revenue_items["Croissant Classic"] == 0
    assert "Croissant" not in report.revenue_items
    assert report.subcategories["revenueItems"]["Croissant Classic"] == "Bucatarie"
    assert "Croissant Classic" in report.items(Category.kitchen)


def test_add_item_with_existing_name_overwrites_value(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        assert service.add_item("2025-03", Category.salary, "Adi", 100)

        report = service.load("2025-03")

    assert report.items(Category.salary)["Adi"] == 100


def test_add_subsection_item_routes_to_its_category(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        assert service.add_subsection_item("2025-03", "Utilitati", "Apa calda", 90)
        assert service.add_subsection_item("2025-03", "Bar", "Limonada", 15)

        report = service.load("2025-03")

    assert report.items(Category.utilities)["Apa calda"] == 90
    assert report.subcategories["expenses"]["Apa calda"] == "Utilitati"
    assert report.items(Category.bar)["Limonada"] == 15


def test_rename_of_missing_item_fails_and_changes_nothing(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        service.save("2025-03", {"salary": {"Adi": 4100}})
        before = service.load("2025-03").document.items

        assert service.rename_item("2025-03", "salary", "Ghost", "Spirit") is False

        after = service.load("2025-03").document.items

    assert after == before


def test_rename_onto_existing_item_overwrites_it(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        service.save("2025-03", {"salary": {"Adi": 5000, "Ioana": 3000}})

        assert service.rename_item("2025-03", "salary", "Adi", "Ioana")
        salary = service.load("2025-03").items(Category.salary)

    # Adi is a default and comes back on load at its template value
    assert salary["Ioana"] == 5000
    assert salary["Adi"] == 4050


def test_delete_default_item_reappears_on_next_load(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        service.save("2025-03", {"salary": {"Adi": 5000}})

        assert service.delete_item("2025-03", Category.salary, "Adi")
        row = session.query(PLReport).one()
        assert "Adi" not in row.salary_expenses

        report = service.load("2025-03")

    assert report.healed is True
    assert report.items(Category.salary)["Adi"] == 4050


def test_delete_custom_item_removes_label(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        service.add_item("2025-03", Category.kitchen, "Focaccia", 50)

        assert service.delete_item("2025-03", "revenueItems", "Focaccia")
        report = service.load("2025-03")

    assert "Focaccia" not in report.revenue_items
    assert "Focaccia" not in report.subcategories["revenueItems"]


def test_delete_missing_item_fails(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        assert service.delete_item("2025-03", Category.other, "Ghost") is False
        # nothing was created for the month
        assert service.load("2025-03").source == "defaults"


def test_anonymous_user_works_against_local_store_only(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path, user=None)
        assert service.load("2025-03") is None

        assert service.update_item("2025-03", Category.salary, "Adi", 4300)
        report = service.load("2025-03")

        assert session.query(PLReport).count() == 0

    assert report.source == "local"
    assert report.items(Category.salary)["Adi"] == 4300
    assert service.is_synced("2025-03") is False
    assert service.month_keys() == ["2025-03"]


def test_remote_failure_falls_back_to_local_with_warning(tmp_path) -> None:
    local = LocalReportStore(tmp_path / "local.json")
    document = ReportDocument.default()
    document.put_item(Category.salary, "Adi", 4700)
    local.write(None, "2025-03", document)

    service = _service(None, tmp_path, remote=UnreachableStore())
    report = service.load("2025-03")

    assert report.source == "local"
    assert report.items(Category.salary)["Adi"] == 4700
    notice = service.notifications.latest()
    assert notice.variant == "warning"
    assert notice.title == "Working offline"


def test_failed_remote_save_reports_error_but_still_mirrors(tmp_path) -> None:
    service = _service(None, tmp_path, remote=UnreachableStore())

    ok = service.save("2025-03", {"salary": {"Adi": 4900}})

    assert ok is False
    assert service.notifications.latest().variant == "destructive"
    local = LocalReportStore(tmp_path / "local.json").fetch(None, "2025-03")
    assert local.items[ReportField.salary_expenses]["Adi"] == 4900


def test_item_operations_fail_cleanly_when_remote_is_down(tmp_path) -> None:
    service = _service(None, tmp_path, remote=UnreachableStore())

    assert service.update_item("2025-03", "salary", "Adi", 1) is False
    assert service.notifications.latest().title == "Update failed"
    assert service.is_synced("2025-03") is False
    assert service.month_keys() == []


def test_invalid_month_and_names_raise_value_error(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        with pytest.raises(ValueError):
            service.load("2025-13")
        with pytest.raises(ValueError):
            service.add_item("2025-03", "salary", "   ")
        with pytest.raises(ValueError):
            service.update_item("2025-03", "desserts", "Tort", 10)


def test_migrate_all_heals_old_documents_once(tmp_path) -> None:
    with _session() as session:
        remote = RemoteReportStore(session)
        old = ReportDocument.empty()
        old.items[ReportField.salary_expenses] = {"Adi": 5000}
        remote.write("owner", "2025-01", old)
        remote.write("other", "2025-02", ReportDocument.default())

        service = _service(session, tmp_path, user=None)
        assert service.migrate_all() == 1
        assert service.migrate_all() == 0

        healed = remote.fetch("owner", "2025-01")

    assert healed.template_version == TEMPLATE_VERSION
    assert healed.items[ReportField.salary_expenses]["Adi"] == 5000
    assert healed.items[ReportField.salary_expenses]["Ioana"] == 4050


def test_is_synced_and_load_many(tmp_path) -> None:
    with _session() as session:
        service = _service(session, tmp_path)
        service.save("2025-02", {})

        assert service.is_synced("2025-02") is True
        assert service.is_synced("2025-03") is False
        reports = service.load_many(["2025-02", "2025-03"])

    assert reports["2025-02"].source == "remote"
    assert reports["2025-03"].source == "defaults"


def test_update_of_unlabelled_kitchen_item_stays_in_kitchen(tmp_path) -> None:
    with _session() as session:
        legacy = ReportDocument.default()
        legacy.subcategories = {"revenueItems": {}, "expenses": {}}
        RemoteReportStore(session).write("owner", "2025-03", legacy)
        service = _service(session, tmp_path)

        assert service.update_item("2025-03", "revenueItems", "Il Classico", 250)
        report = service.load("2025-03")

    assert report.items(Category.kitchen)["Il Classico"] == 250
    assert "Il Classico" not in report.items(Category.bar)
    totals = report.totals()
    assert totals.by_category[Category.kitchen] == 250
    assert totals.by_category[Category.bar] == 0


def test_non_finite_stored_values_load_as_zero(tmp_path) -> None:
    local = LocalReportStore(tmp_path / "local.json")
    (tmp_path / "local.json").write_text(
        '{"plReports": {"2025-03": {"salaryExpenses": {"Adi": "nan", "Ioana": "inf"}}}}',
        encoding="utf-8",
    )

    with _session() as session:
        report = _service(session, tmp_path, user=None).load("2025-03")

    assert report.items(Category.salary)["Adi"] == 0
    assert report.items(Category.salary)["Ioana"] == 0
    assert report.totals().total_expenses == 8100
    assert local.fetch(None, "2025-03") is not None
