"""User roles as carried in Cognito group membership."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class UserRole(str, Enum):
    """Dashboard role derived from the user's Cognito groups."""

    LEADERSHIP = "Leadership"
    SA = "SA"  # Solutions Architect
    AE = "AE"  # Account Executive


# Highest-privilege group wins when a user belongs to several.
_ROLE_PRECEDENCE: tuple[UserRole, ...] = (UserRole.LEADERSHIP, UserRole.SA, UserRole.AE)


def role_from_groups(groups: Iterable[str] | None) -> UserRole | None:
    """Resolve the effective role from a list of group names.

    Returns None when none of the known role groups are present.
    """
    if not groups:
        return None
    members = set(groups)
    for role in _ROLE_PRECEDENCE:
        if role.value in members:
            return role
    return None


def coerce_role(value: UserRole | str | None) -> UserRole | None:
    """Accept a UserRole, its string value, or None; unknown strings map to None."""
    if value is None or isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        return None
