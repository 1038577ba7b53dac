"""
Capability-based permission evaluation.

Every decision is a pure function of the actor passed in and the action being
attempted. Nothing here reads request state or the database.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from exceptions import PermissionDeniedError


class ActorKind(str, Enum):
    ADMIN = "admin"
    SUBADMIN = "subadmin"


class Action(str, Enum):
    ADD_DONATION = "add-donation"
    EDIT_DONATION = "edit-donation"
    DELETE_DONATION = "delete-donation"
    MANAGE_CATEGORY = "manage-category"
    ACCESS_CATEGORY = "access-category"
    # Reserved for the main admin account
    APPROVE_DONATION = "approve-donation"
    MANAGE_SUBADMINS = "manage-subadmins"
    MANAGE_SETTINGS = "manage-settings"
    VIEW_ACTIVITY_LOG = "view-activity-log"
    MODERATE_COMMUNITY = "moderate-community"
    EXPORT_DATA = "export-data"


ADMIN_ONLY_ACTIONS = frozenset({
    Action.APPROVE_DONATION,
    Action.MANAGE_SUBADMINS,
    Action.MANAGE_SETTINGS,
    Action.VIEW_ACTIVITY_LOG,
    Action.MODERATE_COMMUNITY,
    Action.EXPORT_DATA,
})


@dataclass(frozen=True)
class Permissions:
    can_add_donation: bool = True
    can_edit_donation: bool = False
    can_delete_donation: bool = False
    can_manage_category: bool = False
    # Empty means every category is accessible
    assigned_categories: FrozenSet[int] = field(default_factory=frozenset)

    @classmethod
    def from_subadmin(cls, subadmin) -> "Permissions":
        """Build a permission set from a SubAdmin row."""
        return cls(
            can_add_donation=bool(subadmin.can_add_donation),
            can_edit_donation=bool(subadmin.can_edit_donation),
            can_delete_donation=bool(subadmin.can_delete_donation),
            can_manage_category=bool(subadmin.can_manage_category),
            assigned_categories=frozenset(c.id for c in subadmin.assigned_categories),
        )


@dataclass(frozen=True)
class Actor:
    kind: ActorKind
    username: str
    id: Optional[int] = None
    permissions: Optional[Permissions] = None

    @property
    def is_admin(self) -> bool:
        return self.kind == ActorKind.ADMIN


NO_PERMISSIONS = Permissions(can_add_donation=False)

_FLAG_FOR_ACTION = {
    Action.ADD_DONATION: "can_add_donation",
    Action.EDIT_DONATION: "can_edit_donation",
    Action.DELETE_DONATION: "can_delete_donation",
    Action.MANAGE_CATEGORY: "can_manage_category",
}


def can_access_category(actor: Optional[Actor], category_id) -> bool:
    """Check whether the actor may see or touch records of a category."""
    if actor is None:
        return False
    if actor.is_admin:
        return True
    perms = actor.permissions or NO_PERMISSIONS
    return not perms.assigned_categories or category_id in perms.assigned_categories


def is_allowed(actor: Optional[Actor], action: Action, category_id=None) -> bool:
    """
    Decide whether an actor may perform an action.

    Args:
        actor: The authenticated actor, or None for anonymous callers
        action: The action being attempted
        category_id: Required for ACCESS_CATEGORY, ignored otherwise

    Returns:
        bool: True if the action is allowed
    """
    if actor is None:
        return False
    if actor.is_admin:
        return True
    if action in ADMIN_ONLY_ACTIONS:
        return False
    if action == Action.ACCESS_CATEGORY:
        return can_access_category(actor, category_id)

    perms = actor.permissions or NO_PERMISSIONS
    return bool(getattr(perms, _FLAG_FOR_ACTION[action]))


def visible_category_filter(actor: Optional[Actor]) -> Optional[FrozenSet[int]]:
    """Return the category ids an actor is restricted to, or None for no restriction."""
    if actor is None or actor.is_admin or actor.permissions is None:
        return None
    return actor.permissions.assigned_categories or None


def ensure_allowed(actor: Optional[Actor], action: Action, category_id=None) -> None:
    """Raise PermissionDeniedError unless is_allowed() agrees."""
    if not is_allowed(actor, action, category_id):
        raise PermissionDeniedError(action)
