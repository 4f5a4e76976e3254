"""
Permission collaborator.

The state machine only needs has_permission(name). Permissions are granted
through roles; the built-in roles below can be replaced or extended with a
roles.json file of the form {"role": ["orders.read", ...]}.
"""
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from .errors import UnknownRole

logger = logging.getLogger(__name__)

ORDERS_READ    = "orders.read"
ORDERS_CREATE  = "orders.create"
ORDERS_UPDATE  = "orders.update"
ORDERS_APPROVE = "orders.approve"

DEFAULT_ROLES: dict[str, list[str]] = {
    "admin":      [ORDERS_READ, ORDERS_CREATE, ORDERS_UPDATE, ORDERS_APPROVE],
    "manager":    [ORDERS_READ, ORDERS_CREATE, ORDERS_UPDATE, ORDERS_APPROVE],
    "production": [ORDERS_READ, ORDERS_UPDATE],
    "sales":      [ORDERS_READ, ORDERS_CREATE],
}


class PermissionSet:
    """An immutable set of granted permission names."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names = frozenset(n.strip() for n in names if n and n.strip())

    def has_permission(self, name: str) -> bool:
        return name in self._names

    def has_any(self, names: Iterable[str]) -> bool:
        return any(self.has_permission(n) for n in names)

    def has_all(self, names: Iterable[str]) -> bool:
        return all(self.has_permission(n) for n in names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self):
        return iter(sorted(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"PermissionSet({sorted(self._names)!r})"


class RoleDirectory:
    """Maps role names to PermissionSets."""

    def __init__(self, roles: Optional[dict[str, Iterable[str]]] = None) -> None:
        source = DEFAULT_ROLES if roles is None else roles
        self._roles = {name.lower(): PermissionSet(perms) for name, perms in source.items()}

    @classmethod
    def load(cls, path: Optional[Path]) -> "RoleDirectory":
        """
        Built-in roles overlaid with *path* if it exists. A file that cannot
        be parsed, or holds any malformed role, is ignored as a whole with a
        warning.
        """
        roles: dict[str, Iterable[str]] = dict(DEFAULT_ROLES)
        if path and path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    overrides = json.load(f)
                parsed: dict[str, list] = {}
                for name, perms in overrides.items():
                    if name.startswith("_"):
                        continue
                    if not isinstance(perms, list):
                        raise ValueError(f"role '{name}' must map to a list of permissions")
                    parsed[name] = perms
                roles.update(parsed)
                logger.debug("Loaded %d role override(s) from %s", len(parsed), path)
            except (OSError, ValueError, AttributeError) as exc:
                logger.warning("Failed to load roles file %s: %s", path, exc)
        return cls(roles)

    @property
    def role_names(self) -> list[str]:
        return sorted(self._roles)

    def permissions_for(self, role: str) -> PermissionSet:
        try:
            return self._roles[role.lower()]
        except KeyError:
            raise UnknownRole(role) from None
