"""Directory implementations consulted by the recipient resolver.

:class:`InMemoryDirectory` is seeded in code (tests, demos).
:class:`SQLiteDirectory` reads users, roles and role assignments from
SQLite tables shaped like the application's membership schema: a role
belongs to a tenant and is addressed by its ``role_key``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from pathlib import Path

from obranotify.core.db import connect, prepare_path

logger = logging.getLogger(__name__)


class InMemoryDirectory:
    """Directory backed by plain dicts.

    Parameters
    ----------
    addresses:
        ``user_id -> email``.
    roles:
        ``(tenant_id, role_key) -> [user_id, ...]``.
    """

    def __init__(
        self,
        addresses: Mapping[str, str] | None = None,
        roles: Mapping[tuple[str, str], Iterable[str]] | None = None,
    ) -> None:
        self._addresses: dict[str, str] = dict(addresses or {})
        self._roles: dict[tuple[str, str], list[str]] = {
            key: list(members) for key, members in (roles or {}).items()
        }

    def add_user(self, user_id: str, email: str | None = None) -> None:
        if email:
            self._addresses[user_id] = email

    def assign_role(self, tenant_id: str, role_key: str, user_id: str) -> None:
        members = self._roles.setdefault((tenant_id, role_key), [])
        if user_id not in members:
            members.append(user_id)

    def get_contact_address(self, user_id: str) -> str | None:
        return self._addresses.get(user_id)

    def get_role_members(self, role_key: str, tenant_id: str) -> list[str]:
        return list(self._roles.get((tenant_id, role_key), []))


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_USERS = """
CREATE TABLE IF NOT EXISTS users (
    id     TEXT PRIMARY KEY,
    email  TEXT
);
"""

_CREATE_ROLES = """
CREATE TABLE IF NOT EXISTS roles (
    id         TEXT PRIMARY KEY,
    tenant_id  TEXT NOT NULL,
    role_key   TEXT NOT NULL,
    name       TEXT NOT NULL DEFAULT '',
    UNIQUE (tenant_id, role_key)
);
"""

_CREATE_USER_ROLES = """
CREATE TABLE IF NOT EXISTS user_roles (
    user_id  TEXT NOT NULL REFERENCES users(id),
    role_id  TEXT NOT NULL REFERENCES roles(id),
    PRIMARY KEY (user_id, role_id)
);
"""


class SQLiteDirectory:
    """Directory reading ``users``, ``roles`` and ``user_roles`` tables."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = prepare_path(db_path)
        with connect(self._db_path) as conn:
            conn.execute(_CREATE_USERS)
            conn.execute(_CREATE_ROLES)
            conn.execute(_CREATE_USER_ROLES)
            conn.commit()

    def upsert_user(self, user_id: str, email: str | None = None) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                "INSERT INTO users (id, email) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET email = excluded.email",
                (user_id, email),
            )
            conn.commit()

    def assign_role(self, tenant_id: str, role_key: str, user_id: str) -> None:
        """Give *user_id* the role *role_key* in *tenant_id*, creating the role if needed."""
        with connect(self._db_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO users (id, email) VALUES (?, NULL)", (user_id,)
            )
            conn.execute(
                "INSERT OR IGNORE INTO roles (id, tenant_id, role_key, name) VALUES (?, ?, ?, ?)",
                (str(uuid.uuid4()), tenant_id, role_key, role_key),
            )
            (role_id,) = conn.execute(
                "SELECT id FROM roles WHERE tenant_id = ? AND role_key = ?",
                (tenant_id, role_key),
            ).fetchone()
            conn.execute(
                "INSERT OR IGNORE INTO user_roles (user_id, role_id) VALUES (?, ?)",
                (user_id, role_id),
            )
            conn.commit()

    def get_contact_address(self, user_id: str) -> str | None:
        with connect(self._db_path) as conn:
            row = conn.execute(
                "SELECT email FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return row[0] if row else None

    def get_role_members(self, role_key: str, tenant_id: str) -> list[str]:
        with connect(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT ur.user_id
                FROM user_roles ur JOIN roles r ON r.id = ur.role_id
                WHERE r.tenant_id = ? AND r.role_key = ?
                ORDER BY ur.rowid
                """,
                (tenant_id, role_key),
            ).fetchall()
        if not rows:
            logger.debug("Role %s has no members in tenant %s", role_key, tenant_id)
        return [row[0] for row in rows]
