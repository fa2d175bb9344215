#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Address book (SQLite)

Commands:
  init                Create the contacts table if it does not exist
  add                 Add a contact; fails if the email is already stored
  save                Update name and phone of the contact with the given email
  list                Print all contacts

Notes:
- The database comes from --db, else ADDRESSBOOK_DB, else config.yaml, else ./addressbook.db.
- Email identifies a contact; it cannot be changed with `save`.
"""

import argparse
import logging
import sys

from pydantic import ValidationError

from addressbook.db import get_db_address
from addressbook.domain.contact import Contact, ContactExistsError
from addressbook.services.contact_svc import ContactRepository

logger = logging.getLogger(__name__)


def _contact_from_args(args) -> Contact:
    try:
        return Contact(
            first_name=args.first,
            last_name=args.last,
            phone_number=args.phone,
            email=args.email,
        )
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(p) for p in err["loc"])
        raise SystemExit(f"invalid {field}: {err['msg']}")


def _format(c: Contact) -> str:
    return f"{c.id}\t{c.first_name}\t{c.last_name}\t{c.phone_number or ''}\t{c.email}"


# ---------------- Commands ----------------

def cmd_init(args):
    ContactRepository(args.db).ensure_schema()
    print("DB initialized.")


def cmd_add(args):
    try:
        ContactRepository(args.db).add(_contact_from_args(args))
    except ContactExistsError as e:
        raise SystemExit(str(e))
    print("Contact added.")


def cmd_save(args):
    contact = _contact_from_args(args)
    if ContactRepository(args.db).update(contact) == 0:
        raise SystemExit(f"No contact with email {contact.email}; nothing saved.")
    print("Contact saved.")


def cmd_list(args):
    for c in ContactRepository(args.db).get_all_contacts():
        print(_format(c))


def _add_contact_args(p):
    p.add_argument("--first", required=True)
    p.add_argument("--last", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--phone", required=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Address book (SQLite)")
    parser.add_argument("--db", default=None, help="connection address, e.g. sqlite:/path/to/addressbook.db")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="create the contacts table")
    p_init.set_defaults(func=cmd_init)

    p_add = sub.add_parser("add", help="add a contact")
    _add_contact_args(p_add)
    p_add.set_defaults(func=cmd_add)

    p_save = sub.add_parser("save", help="update a contact by email")
    _add_contact_args(p_save)
    p_save.set_defaults(func=cmd_save)

    p_list = sub.add_parser("list", help="print all contacts")
    p_list.set_defaults(func=cmd_list)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s | %(levelname)-8s | %(message)s',
    )
    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)
    args.db = args.db or get_db_address()
    logger.debug(f"using database {args.db}")
    args.func(args)


if __name__ == "__main__":
    main()
