"""Recipient resolution — tokens to user ids, user ids to addresses.

A recipient token is either a literal user id or a group token
``"role:<roleKey>"``.  Group tokens are expanded at emission time against
the event's tenant.  Directory failures never propagate: a failed lookup
degrades to "no address" / "no members" so the rest of the batch still
goes out.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ROLE_PREFIX = "role:"


@runtime_checkable
class Directory(Protocol):
    """Membership/directory collaborator consulted by the resolver."""

    def get_contact_address(self, user_id: str) -> str | None:
        """Return the user's email address, or ``None``."""
        ...

    def get_role_members(self, role_key: str, tenant_id: str) -> list[str]:
        """Return the user ids holding *role_key* in *tenant_id*."""
        ...


def role_token(role_key: str) -> str:
    return f"{ROLE_PREFIX}{role_key}"


def parse_role_token(token: str) -> str | None:
    """Return the role key of a group token, or ``None`` for a literal id.

    A group token with an empty key yields ``""`` and expands to nobody.
    """
    if token.startswith(ROLE_PREFIX):
        return token[len(ROLE_PREFIX):].strip()
    return None


class RecipientResolver:
    """Resolves recipient tokens and contact addresses via a :class:`Directory`."""

    def __init__(self, directory: Directory) -> None:
        self._directory = directory

    def resolve_contact_address(self, user_id: str) -> str | None:
        try:
            address = self._directory.get_contact_address(user_id)
        except Exception as exc:
            logger.warning("Contact lookup failed for user %s: %s", user_id, exc)
            return None
        return address or None

    def resolve_role_members(self, role_key: str, tenant_id: str | None) -> list[str]:
        if not role_key or not tenant_id:
            return []
        try:
            members = self._directory.get_role_members(role_key, tenant_id)
        except Exception as exc:
            logger.warning(
                "Role lookup failed for role %s in tenant %s: %s",
                role_key,
                tenant_id,
                exc,
            )
            return []
        return [str(member) for member in members or [] if member]

    def expand_tokens(self, tokens: Iterable[str], tenant_id: str | None) -> list[str]:
        """Expand tokens into distinct user ids, preserving first-seen order."""
        user_ids: dict[str, None] = {}
        for token in tokens:
            if not token:
                continue
            token = str(token)
            role_key = parse_role_token(token)
            if role_key is None:
                user_ids.setdefault(token, None)
                continue
            members = self.resolve_role_members(role_key, tenant_id)
            logger.debug(
                "Role %s in tenant %s expanded to %d user(s)",
                role_key,
                tenant_id,
                len(members),
            )
            for member in members:
                user_ids.setdefault(member, None)
        return list(user_ids)
