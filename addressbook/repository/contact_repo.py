from __future__ import annotations

from typing import Any, List, Optional

from ..domain.contact import Contact

DDL = """
CREATE TABLE IF NOT EXISTS contacts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    first_name VARCHAR(50) NOT NULL,
    last_name VARCHAR(50) NOT NULL,
    phone_number VARCHAR(20),
    email VARCHAR(100)
)
"""

INSERT_SQL = "INSERT INTO contacts (email, first_name, last_name, phone_number) VALUES (?, ?, ?, ?)"
CONDITIONAL_SUFFIX = " IF NOT EXISTS"
UPDATE_SQL = "UPDATE contacts SET first_name=?, last_name=?, phone_number=? WHERE email=?"
SELECT_ALL_SQL = "SELECT * FROM contacts"


def ensure_schema(conn):
    conn.execute(DDL)


def _insert_params(c: Contact) -> tuple:
    return (c.email, c.first_name, c.last_name, c.phone_number)


def insert_if_not_exists(conn, c: Contact) -> Optional[bool]:
    """
    Issue the driver-level conditional insert.

    Returns the applied flag from the first column of the first result row,
    or None when the driver returned no result set.
    """
    cur = conn.execute(INSERT_SQL + CONDITIONAL_SUFFIX, _insert_params(c))
    if cur is None or getattr(cur, "description", None) is None:
        return None
    row = cur.fetchone()
    if row is None:
        return None
    return bool(row[0])


def insert(conn, c: Contact) -> int:
    cur = conn.execute(INSERT_SQL, _insert_params(c))
    return cur.lastrowid


def exists(conn, email: str) -> bool:
    row = conn.execute("SELECT 1 FROM contacts WHERE email=?", (email,)).fetchone()
    return row is not None


def update(conn, c: Contact) -> int:
    cur = conn.execute(UPDATE_SQL, (c.first_name, c.last_name, c.phone_number, c.email))
    return cur.rowcount


def row_to_contact(row: Any) -> Contact:
    # stored values are not re-validated; column sizes are not enforced by SQLite
    return Contact.model_construct(
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone_number=row["phone_number"],
        email=row["email"],
        id=int(row["id"]),
    )


def list_all(conn) -> List[Contact]:
    return [row_to_contact(r) for r in conn.execute(SELECT_ALL_SQL).fetchall()]


def get_by_email(conn, email: str) -> Optional[Contact]:
    row = conn.execute("SELECT * FROM contacts WHERE email=?", (email,)).fetchone()
    return row_to_contact(row) if row else None
