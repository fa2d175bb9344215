import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "addressbook_test.db"
    # Point the package to this temp DB
    os.environ["ADDRESSBOOK_DB"] = f"sqlite:{path}"
    from addressbook.services.contact_svc import ContactRepository
    ContactRepository().ensure_schema()
    return str(path)


@pytest.fixture()
def db_address(tmp_db_path):
    return f"sqlite:{tmp_db_path}"


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Clean tables before each test for isolation
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("ADDRESSBOOK_DB") == f"sqlite:{tmp_db_path}", "Refusing to clean non-temp DB"
    conn = sqlite3.connect(tmp_db_path)
    try:
        conn.execute("DELETE FROM contacts")
        conn.commit()
    finally:
        conn.close()
    yield


class AppliedCursor:
    """Single-row result set carrying the `[applied]` flag."""

    description = (("[applied]", None, None, None, None, None, None),)

    def __init__(self, applied: bool):
        self._rows = [(applied,)]

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None


class InsertIfNotExistsConnection:
    """
    Wraps a SQLite connection and answers `INSERT ... IF NOT EXISTS`
    with an `[applied]` row, keyed on the first bound parameter (email).
    Every other statement is passed through unchanged.
    """

    def __init__(self, db_path: str, statements: list):
        self._conn = sqlite3.connect(db_path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self.statements = statements

    def execute(self, sql, params=()):
        self.statements.append(sql)
        if sql.endswith(" IF NOT EXISTS"):
            found = self._conn.execute(
                "SELECT email FROM contacts WHERE email=?", (params[0],)
            ).fetchone() is not None
            if not found:
                self._conn.execute(sql[: -len(" IF NOT EXISTS")], params)
            return AppliedCursor(not found)
        return self._conn.execute(sql, params)

    def commit(self):
        self._conn.commit()

    def close(self):
        self._conn.close()


@pytest.fixture()
def stub_driver(tmp_db_path):
    """Register the `xtest` driver backed by the temp DB; yields executed SQL."""
    from addressbook.db import register_driver, unregister_driver

    statements: list = []
    handlers = {"insert-if-not-exists": InsertIfNotExistsConnection}

    def connect(addr):
        handler = handlers[addr.params["handler"]]
        return handler(tmp_db_path, statements)

    register_driver("xtest", connect, conditional_insert=True)
    yield statements
    unregister_driver("xtest")
