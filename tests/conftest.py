# Shared pytest fixtures
from __future__ import annotations
import copy
import tempfile
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any

import pytest

from risk_importer.db.risk_store import ExistingRisk, RowWriteError
from risk_importer.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """max_file_size_mb: 10
default_risk_type: project
default_duplicate_action: skip
auto_calculate_risk_level: true
preview_row_count: 5
error_log_dir: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "importer.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fresh_logging():
    reset_logging()
    yield
    reset_logging()


class InMemoryRiskStore:
    """RiskStore double keeping tables in dicts.

    Mirrors the natural-key lookups (exact match, soft-deleted rows ignored,
    lowest id first) and the COALESCE update semantics. savepoint() snapshots
    the tables and restores them when a RowWriteError escapes the block.
    """

    def __init__(self) -> None:
        self.project_risks: dict[int, dict[str, Any]] = {}
        self.vendor_risks: dict[int, dict[str, Any]] = {}
        self.project_links: list[tuple[int, int]] = []
        self.framework_links: list[tuple[int, int]] = []
        self.calls: list[str] = []
        self.fail_names: set[str] = set()  # risk names / descriptions whose writes raise RowWriteError
        self.fail_with: type[BaseException] | None = None  # raised by every write when set
        self._next_id = 1

    # -- helpers ---------------------------------------------------------

    def _new_id(self) -> int:
        rid = self._next_id
        self._next_id += 1
        return rid

    def _maybe_fail(self, key: str | None) -> None:
        if self.fail_with is not None:
            raise self.fail_with("connection lost")
        if key in self.fail_names:
            raise RowWriteError(f'duplicate key value violates unique constraint for "{key}"')

    def seed_project(self, risk_name: str, *, is_deleted: bool = False, **values: Any) -> int:
        rid = self._new_id()
        self.project_risks[rid] = {"risk_name": risk_name, "is_deleted": is_deleted, **values}
        return rid

    def seed_vendor(self, risk_description: str, vendor_id: int, *, is_deleted: bool = False, **values: Any) -> int:
        rid = self._new_id()
        self.vendor_risks[rid] = {
            "risk_description": risk_description,
            "vendor_id": vendor_id,
            "is_deleted": is_deleted,
            **values,
        }
        return rid

    # -- RiskStore API ---------------------------------------------------

    def find_project_risk(self, risk_name: str) -> ExistingRisk | None:
        self.calls.append("find_project_risk")
        for rid in sorted(self.project_risks):
            row = self.project_risks[rid]
            if row["risk_name"] == risk_name and not row["is_deleted"]:
                return ExistingRisk(rid, row["risk_name"])
        return None

    def find_vendor_risk(self, risk_description: str, vendor_id: int | None = None) -> ExistingRisk | None:
        self.calls.append("find_vendor_risk")
        for rid in sorted(self.vendor_risks):
            row = self.vendor_risks[rid]
            if row["risk_description"] != risk_description or row["is_deleted"]:
                continue
            if vendor_id is not None and row["vendor_id"] != vendor_id:
                continue
            return ExistingRisk(rid, row["risk_description"])
        return None

    def insert_project_risk(self, data) -> int:
        self.calls.append("insert_project_risk")
        self._maybe_fail(data.risk_name)
        rid = self._new_id()
        self.project_risks[rid] = {**asdict(data), "is_deleted": False}
        return rid

    def update_project_risk(self, risk_id: int, data) -> None:
        self.calls.append("update_project_risk")
        self._maybe_fail(data.risk_name)
        row = self.project_risks[risk_id]
        row.update({k: v for k, v in asdict(data).items() if v is not None and k != "risk_name"})
        row["updated"] = True

    def insert_vendor_risk(self, vendor_id: int, data) -> int:
        self.calls.append("insert_vendor_risk")
        self._maybe_fail(data.risk_description)
        rid = self._new_id()
        self.vendor_risks[rid] = {**asdict(data), "vendor_id": vendor_id, "is_deleted": False}
        return rid

    def update_vendor_risk(self, risk_id: int, data) -> None:
        self.calls.append("update_vendor_risk")
        self._maybe_fail(data.risk_description)
        row = self.vendor_risks[risk_id]
        row.update({k: v for k, v in asdict(data).items() if v is not None and k != "risk_description"})
        row["updated"] = True

    def link_project(self, project_id: int, risk_id: int) -> None:
        self.calls.append("link_project")
        self.project_links.append((project_id, risk_id))

    def link_framework(self, framework_id: int, risk_id: int) -> None:
        self.calls.append("link_framework")
        self.framework_links.append((framework_id, risk_id))

    @contextmanager
    def savepoint(self):
        snapshot = copy.deepcopy(
            (self.project_risks, self.vendor_risks, self.project_links, self.framework_links)
        )
        try:
            yield
        except RowWriteError:
            self.project_risks, self.vendor_risks, self.project_links, self.framework_links = snapshot
            raise

    @property
    def write_calls(self) -> list[str]:
        return [c for c in self.calls if not c.startswith("find_")]


@pytest.fixture()
def memory_store() -> InMemoryRiskStore:
    return InMemoryRiskStore()


class DummyCursor:
    """psycopg2 cursor double recording every execute call.

    ``fetch_results`` is consumed by fetchone() in order; ``raise_on`` maps a
    SQL substring to the exception execute() raises for it.
    """

    def __init__(self, fetch_results: list[Any] | None = None, raise_on: dict[str, BaseException] | None = None):
        self.executed: list[tuple[Any, Any]] = []
        self.fetch_results = list(fetch_results or [])
        self.raise_on = raise_on or {}
        self.closed = False

    def execute(self, sql: Any, params: Any = None) -> None:
        self.executed.append((sql, params))
        text = sql if isinstance(sql, str) else repr(sql)
        for fragment, exc in self.raise_on.items():
            if fragment in text:
                raise exc

    def fetchone(self) -> Any:
        if not self.fetch_results:
            return None
        return self.fetch_results.pop(0)

    def close(self) -> None:
        self.closed = True

    @property
    def statements(self) -> list[str]:
        return [s if isinstance(s, str) else repr(s) for s, _ in self.executed]


class DummyConnection:
    def __init__(self, cursor: DummyCursor | None = None, commit_error: BaseException | None = None):
        self._cursor = cursor or DummyCursor()
        self.commit_error = commit_error
        self.commits = 0
        self.rollbacks = 0
        self.closed = 0

    def cursor(self) -> DummyCursor:
        return self._cursor

    def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = 1


@pytest.fixture()
def dummy_cursor() -> DummyCursor:
    return DummyCursor()


@pytest.fixture()
def dummy_connection(dummy_cursor: DummyCursor) -> DummyConnection:
    return DummyConnection(dummy_cursor)
