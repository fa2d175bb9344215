from __future__ import annotations

# addressbook/db.py
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional
from urllib.parse import parse_qsl, quote, urlencode

import yaml

# Connection address resolution order:
# 1) ADDRESSBOOK_DB environment variable (highest priority)
# 2) config.yaml test_db_address (when running under tests)
# 3) config.yaml db_address
# 4) fallback: addressbook.db in the project root
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "addressbook.db")


@dataclass(frozen=True)
class ConnectionAddress:
    scheme: str
    target: str
    params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Driver:
    connect: Callable[[ConnectionAddress], Any]
    conditional_insert: bool = False


_DRIVERS: Dict[str, Driver] = {}


def register_driver(scheme: str, connect: Callable[[ConnectionAddress], Any], conditional_insert: bool = False):
    """Register a driver for addresses starting with `scheme:`.

    `connect` receives the parsed address and returns a DB-API style
    connection exposing execute() and close(). Drivers that answer
    `INSERT ... IF NOT EXISTS` with an applied flag pass conditional_insert=True.
    """
    _DRIVERS[scheme.lower()] = Driver(connect=connect, conditional_insert=conditional_insert)


def unregister_driver(scheme: str):
    _DRIVERS.pop(scheme.lower(), None)


def get_driver(scheme: str) -> Driver:
    drv = _DRIVERS.get(scheme.lower())
    if drv is None:
        raise ValueError(f"no driver registered for scheme: {scheme}")
    return drv


def parse_address(address: str) -> ConnectionAddress:
    """Split `[jdbc:]scheme:target[?k=v&...]` into its parts."""
    s = (address or "").strip()
    if s.lower().startswith("jdbc:"):
        s = s[5:]
    scheme, sep, rest = s.partition(":")
    if not sep or not scheme:
        raise ValueError(f"invalid connection address: {address!r}")
    target, _, query = rest.partition("?")
    # sqlite:///abs/path -> /abs/path
    if target.startswith("//"):
        target = target[2:]
    if not target:
        raise ValueError(f"connection address has no target: {address!r}")
    return ConnectionAddress(scheme=scheme.lower(), target=target, params=dict(parse_qsl(query)))


def _read_config_yaml() -> dict:
    cfg_path = os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(cfg, dict):
        return {}
    out = {}
    for k in ("db_address", "test_db_address"):
        v = cfg.get(k)
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    return out


def get_db_address() -> str:
    env_address = os.environ.get("ADDRESSBOOK_DB")
    cfg = _read_config_yaml()
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_address:
        return env_address
    if is_test and cfg.get("test_db_address"):
        return cfg["test_db_address"]
    if cfg.get("db_address"):
        return cfg["db_address"]
    return f"sqlite:{_ROOT_DB}"


def supports_conditional_insert(address: str) -> bool:
    return get_driver(parse_address(address).scheme).conditional_insert


# In-memory databases live while one connection is open; keep one per URI.
_MEMORY_KEEPERS: Dict[str, sqlite3.Connection] = {}


def _is_memory(addr: ConnectionAddress) -> bool:
    return addr.target == ":memory:" or addr.params.get("mode") == "memory"


def _sqlite_uri(addr: ConnectionAddress) -> str:
    params = dict(addr.params)
    if _is_memory(addr):
        params.setdefault("cache", "shared")
    path = ":memory:" if addr.target == ":memory:" else quote(addr.target)
    return f"file:{path}?{urlencode(params)}"


def close_memory_databases():
    """Close the keeper connections, dropping every in-memory database."""
    while _MEMORY_KEEPERS:
        _, keeper = _MEMORY_KEEPERS.popitem()
        keeper.close()


def _sqlite_connect(addr: ConnectionAddress) -> sqlite3.Connection:
    if _is_memory(addr):
        uri = _sqlite_uri(addr)
        if uri not in _MEMORY_KEEPERS:
            _MEMORY_KEEPERS[uri] = sqlite3.connect(uri, uri=True, check_same_thread=False)
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False, isolation_level=None)
    else:
        dirn = os.path.dirname(addr.target)
        if dirn:
            os.makedirs(dirn, exist_ok=True)
        if addr.params:
            conn = sqlite3.connect(_sqlite_uri(addr), uri=True, check_same_thread=False, isolation_level=None)
        else:
            conn = sqlite3.connect(addr.target, check_same_thread=False, isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row
    return conn


register_driver("sqlite", _sqlite_connect)


def connect(address: Optional[str] = None):
    addr = parse_address(address or get_db_address())
    return get_driver(addr.scheme).connect(addr)


@contextmanager
def get_conn(address: Optional[str] = None) -> Iterator[Any]:
    """
    Open a connection for `address` (or get_db_address()) and close it on exit.
    SQLite connections run in autocommit mode with sqlite3.Row rows.
    """
    conn = connect(address)
    try:
        yield conn
    finally:
        conn.close()
