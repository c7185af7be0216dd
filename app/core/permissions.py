"""Permission-string checks shared by every gated route."""

from collections.abc import Iterable

# Any of these grants every permission.
ADMIN_SENTINELS = frozenset({"all", "admin", "ADMIN"})

# Permission named in 403 responses from the admin-only gate.
ADMIN_PERMISSION = "admin"


def is_admin(permissions: Iterable[str] | None) -> bool:
    """True if the permission set contains an admin sentinel."""
    return any(p in ADMIN_SENTINELS for p in permissions or ())


def has_permission(permissions: Iterable[str] | None, required: str) -> bool:
    """True if the set contains `required` exactly or any admin sentinel."""
    perms = set(permissions or ())
    return required in perms or not perms.isdisjoint(ADMIN_SENTINELS)
