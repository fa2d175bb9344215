from __future__ import annotations

import logging
from typing import List, Optional

from ..db import get_conn, get_db_address, supports_conditional_insert
from ..domain.contact import Contact, ContactExistsError
from ..repository import contact_repo

logger = logging.getLogger(__name__)


class ContactRepository:
    """
    Contacts stored in the `contacts` table of the database at `address`.

    Every operation opens its own connection and closes it before returning,
    errors included. Driver errors propagate unchanged; a duplicate email on
    add() raises ContactExistsError.
    """

    def __init__(self, address: Optional[str] = None):
        self.address = address or get_db_address()

    def ensure_schema(self):
        with get_conn(self.address) as conn:
            contact_repo.ensure_schema(conn)
            conn.commit()

    def add(self, contact: Contact) -> Contact:
        """Insert `contact` unless a row with its email already exists."""
        if supports_conditional_insert(self.address):
            with get_conn(self.address) as conn:
                applied = contact_repo.insert_if_not_exists(conn, contact)
                conn.commit()
            if applied is False:
                logger.info(f"add rejected, email already stored: {contact.email}")
                raise ContactExistsError()
        else:
            self._add_in_transaction(contact)
        logger.debug(f"added contact {contact.email}")
        return contact

    def _add_in_transaction(self, contact: Contact):
        # check-then-insert under a write lock taken up front
        with get_conn(self.address) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                if contact_repo.exists(conn, contact.email):
                    logger.info(f"add rejected, email already stored: {contact.email}")
                    raise ContactExistsError()
                contact_repo.insert(conn, contact)
            except BaseException:
                # SQLite may already have rolled back (e.g. disk full)
                if getattr(conn, "in_transaction", True):
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def save(self, contact: Contact) -> Contact:
        """Update names and phone of the row with `contact.email`. A miss is a no-op."""
        self.update(contact)
        return contact

    def update(self, contact: Contact) -> int:
        """Same as save(), returning the number of rows changed (0 or 1)."""
        with get_conn(self.address) as conn:
            affected = contact_repo.update(conn, contact)
            conn.commit()
        if affected == 0:
            logger.warning(f"save matched no contact for email {contact.email}")
        else:
            logger.debug(f"saved contact {contact.email}")
        return affected

    def get_all_contacts(self) -> List[Contact]:
        with get_conn(self.address) as conn:
            return contact_repo.list_all(conn)

    def find_by_email(self, email: str) -> Optional[Contact]:
        with get_conn(self.address) as conn:
            return contact_repo.get_by_email(conn, email)
