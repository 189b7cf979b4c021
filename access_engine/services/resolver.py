"""Effective permission resolution.

Combines role-derived permissions with a user's direct overrides. Everything
in this module is pure: no session, no clock, no I/O.
"""

from typing import Iterable, List, Sequence

from access_engine.models.override import OverrideType


def permission_key(resource: str, action: str) -> str:
    """Build the ``"resource:action"`` key used throughout the engine."""
    return f"{resource}:{action}"


def sort_roles(roles: Iterable) -> List:
    """Return ``roles`` ordered by priority, highest first.

    The sort is stable, so roles sharing a priority keep their input order.
    """
    return sorted(roles, key=lambda role: role.priority, reverse=True)


def resolve_permissions(roles: Sequence, overrides: Sequence) -> frozenset:
    """Compute the effective permission set.

    Args:
        roles: Assigned roles, each exposing ``priority`` and ``permissions``
            (objects with ``resource`` and ``action``).
        overrides: Active direct overrides in storage read order, each
            exposing ``override_type`` and ``permission``.

    Returns:
        Frozen set of ``"resource:action"`` keys.

    A grant adds its key and lifts any earlier deny for it. A deny is applied
    after every override has been seen, so a deny that is not followed by a
    grant for the same key removes it even when a role confers it.
    """
    granted = set()
    for role in sort_roles(roles):
        for perm in role.permissions or ():
            granted.add(permission_key(perm.resource, perm.action))

    denied = set()
    for override in overrides:
        perm = override.permission
        if perm is None:
            continue
        key = permission_key(perm.resource, perm.action)
        if OverrideType(override.override_type) is OverrideType.grant:
            granted.add(key)
            denied.discard(key)
        else:
            denied.add(key)

    return frozenset(granted - denied)
