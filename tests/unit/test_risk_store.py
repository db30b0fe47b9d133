from __future__ import annotations
import psycopg2
import pytest
from risk_importer.db.risk_store import PROJECT_RISK_DEFAULTS, ExistingRisk, RiskStore, RowWriteError
from risk_importer.models.mapped_row import ProjectRiskData, VendorRiskData


def test_find_project_risk_query(dummy_cursor):
    dummy_cursor.fetch_results = [(42, "Server outage")]
    store = RiskStore(dummy_cursor)
    found = store.find_project_risk("Server outage")
    assert found == ExistingRisk(42, "Server outage")
    sql, params = dummy_cursor.executed[0]
    assert "FROM risks" in sql
    assert "is_deleted = false" in sql
    assert "ORDER BY id LIMIT 1" in sql
    assert params == ("Server outage",)


def test_find_project_risk_miss(dummy_cursor):
    assert RiskStore(dummy_cursor).find_project_risk("nothing") is None


def test_find_vendor_risk_with_and_without_vendor(dummy_cursor):
    store = RiskStore(dummy_cursor)
    store.find_vendor_risk("Breach")
    store.find_vendor_risk("Breach", 7)
    (sql1, p1), (sql2, p2) = dummy_cursor.executed
    assert "vendor_id" not in sql1 and p1 == ("Breach",)
    assert "vendor_id = %s" in sql2 and p2 == ("Breach", 7)
    assert "FROM vendorrisks" in sql1 and "FROM vendorrisks" in sql2


def test_insert_project_risk_applies_defaults(dummy_cursor):
    dummy_cursor.fetch_results = [(101,)]
    store = RiskStore(dummy_cursor)
    new_id = store.insert_project_risk(ProjectRiskData(risk_name="A", risk_description="B", likelihood="Likely"))
    assert new_id == 101
    sql, params = dummy_cursor.executed[0]
    assert sql.strip().startswith("INSERT INTO risks")
    assert "RETURNING id" in sql
    assert params["risk_name"] == "A"
    assert params["likelihood"] == "Likely"
    assert params["severity"] == PROJECT_RISK_DEFAULTS["severity"] == "Moderate"
    assert params["risk_category"] == ["Operational risk"]
    assert params["approval_status"] == "Pending"
    assert params["deadline"] is None  # NOW() in SQL
    assert "COALESCE(%(deadline)s::timestamptz, NOW())" in sql


def test_insert_project_risk_category_array(dummy_cursor):
    dummy_cursor.fetch_results = [(1,)]
    RiskStore(dummy_cursor).insert_project_risk(
        ProjectRiskData(risk_name="A", risk_description="B", risk_category="Legal risk")
    )
    assert dummy_cursor.executed[0][1]["risk_category"] == ["Legal risk"]


def test_insert_without_returned_id_is_row_error(dummy_cursor):
    with pytest.raises(RowWriteError):
        RiskStore(dummy_cursor).insert_project_risk(ProjectRiskData(risk_name="A", risk_description="B"))


def test_update_project_risk_passes_none_for_coalesce(dummy_cursor):
    RiskStore(dummy_cursor).update_project_risk(5, ProjectRiskData(risk_name="A", impact="High"))
    sql, params = dummy_cursor.executed[0]
    assert "COALESCE(%(impact)s, impact)" in sql
    assert "updated_at = NOW()" in sql
    assert params["id"] == 5
    assert params["impact"] == "High"
    assert params["likelihood"] is None
    assert params["risk_category"] is None


def test_insert_vendor_risk_stores_vendor_id(dummy_cursor):
    dummy_cursor.fetch_results = [(9,)]
    new_id = RiskStore(dummy_cursor).insert_vendor_risk(
        7, VendorRiskData(risk_description="Breach", likelihood="Likely")
    )
    assert new_id == 9
    sql, params = dummy_cursor.executed[0]
    assert "INSERT INTO vendorrisks" in sql
    assert params["vendor_id"] == 7
    assert params["action_owner"] is None


def test_update_vendor_risk(dummy_cursor):
    RiskStore(dummy_cursor).update_vendor_risk(3, VendorRiskData(risk_description="Breach", action_plan="Patch"))
    sql, params = dummy_cursor.executed[0]
    assert "UPDATE vendorrisks" in sql
    assert params == {
        "id": 3,
        "impact_description": None,
        "likelihood": None,
        "risk_severity": None,
        "action_plan": "Patch",
        "action_owner": None,
        "risk_level": None,
    }


def test_link_statements(dummy_cursor):
    store = RiskStore(dummy_cursor)
    store.link_project(1, 2)
    store.link_framework(3, 4)
    assert "projects_risks" in dummy_cursor.executed[0][0] and dummy_cursor.executed[0][1] == (1, 2)
    assert "frameworks_risks" in dummy_cursor.executed[1][0] and dummy_cursor.executed[1][1] == (3, 4)


def test_database_error_wrapped_as_row_error(dummy_cursor):
    dummy_cursor.raise_on = {"INSERT INTO risks": psycopg2.IntegrityError("duplicate key value")}
    with pytest.raises(RowWriteError) as e:
        RiskStore(dummy_cursor).insert_project_risk(ProjectRiskData(risk_name="A", risk_description="B"))
    assert "duplicate key value" in str(e.value)


@pytest.mark.parametrize("exc", [psycopg2.OperationalError("server closed"), psycopg2.InterfaceError("closed")])
def test_infrastructure_errors_propagate(dummy_cursor, exc):
    dummy_cursor.raise_on = {"FROM risks": exc}
    with pytest.raises(type(exc)):
        RiskStore(dummy_cursor).find_project_risk("A")


def test_savepoint_release_on_success(dummy_cursor):
    store = RiskStore(dummy_cursor)
    with store.savepoint():
        dummy_cursor.execute("SELECT 1")
    assert dummy_cursor.statements == ["SAVEPOINT risk_row_1", "SELECT 1", "RELEASE SAVEPOINT risk_row_1"]


def test_savepoint_rollback_on_row_error(dummy_cursor):
    store = RiskStore(dummy_cursor)
    with pytest.raises(RowWriteError):
        with store.savepoint():
            raise RowWriteError("boom")
    with store.savepoint():
        pass
    assert dummy_cursor.statements == [
        "SAVEPOINT risk_row_1",
        "ROLLBACK TO SAVEPOINT risk_row_1",
        "SAVEPOINT risk_row_2",
        "RELEASE SAVEPOINT risk_row_2",
    ]


def test_savepoint_leaves_other_errors_to_transaction(dummy_cursor):
    store = RiskStore(dummy_cursor)
    with pytest.raises(psycopg2.OperationalError):
        with store.savepoint():
            raise psycopg2.OperationalError("gone")
    assert dummy_cursor.statements == ["SAVEPOINT risk_row_1"]
