"""
Sub-admin account management. Only the main admin reaches these functions.
"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from auth import ADMIN_USERNAME, get_password_hash
from exceptions import DuplicateUsernameError, NotFoundError
from models import Category, SubAdmin
from permissions import Action, Actor, ensure_allowed

PERMISSION_FLAGS = ("can_add_donation", "can_edit_donation", "can_delete_donation", "can_manage_category")


def _resolve_categories(db: Session, category_ids: Iterable[int]) -> List[Category]:
    wanted = set(category_ids)
    if not wanted:
        return []
    found = db.query(Category).filter(Category.id.in_(wanted)).all()
    missing = wanted - {c.id for c in found}
    if missing:
        raise NotFoundError("Category", sorted(missing)[0])
    return found


def _check_username_free(db: Session, username: str, exclude_id: Optional[int] = None):
    # The main admin name is reserved so logins and log entries stay unambiguous
    if username == ADMIN_USERNAME:
        raise DuplicateUsernameError(username)
    query = db.query(SubAdmin).filter(SubAdmin.username == username)
    if exclude_id is not None:
        query = query.filter(SubAdmin.id != exclude_id)
    if query.first():
        raise DuplicateUsernameError(username)


def _apply_permissions(db: Session, subadmin: SubAdmin, permissions: dict):
    for flag in PERMISSION_FLAGS:
        if flag in permissions:
            setattr(subadmin, flag, bool(permissions[flag]))
    if "assigned_categories" in permissions:
        subadmin.assigned_categories = _resolve_categories(db, permissions["assigned_categories"] or [])


def list_subadmins(db: Session, actor: Actor) -> List[SubAdmin]:
    ensure_allowed(actor, Action.MANAGE_SUBADMINS)
    return db.query(SubAdmin).order_by(SubAdmin.id).all()


def get_subadmin(db: Session, subadmin_id: int) -> SubAdmin:
    subadmin = db.query(SubAdmin).filter(SubAdmin.id == subadmin_id).first()
    if not subadmin:
        raise NotFoundError("Sub-admin", subadmin_id)
    return subadmin


def create_subadmin(db: Session, actor: Actor, username: str, password: str, permissions: dict) -> SubAdmin:
    ensure_allowed(actor, Action.MANAGE_SUBADMINS)
    _check_username_free(db, username)

    subadmin = SubAdmin(username=username, hashed_password=get_password_hash(password))
    _apply_permissions(db, subadmin, permissions)
    db.add(subadmin)
    db.commit()
    db.refresh(subadmin)
    return subadmin


def update_subadmin(
    db: Session,
    actor: Actor,
    subadmin_id: int,
    username: Optional[str] = None,
    password: Optional[str] = None,
    permissions: Optional[dict] = None,
):
    """
    Update a sub-admin. A missing password keeps the current one.

    Returns:
        The username before the edit, and the updated account
    """
    ensure_allowed(actor, Action.MANAGE_SUBADMINS)
    subadmin = get_subadmin(db, subadmin_id)
    old_username = subadmin.username

    if username and username != subadmin.username:
        _check_username_free(db, username, exclude_id=subadmin.id)
        subadmin.username = username
    if password:
        subadmin.hashed_password = get_password_hash(password)
    if permissions is not None:
        _apply_permissions(db, subadmin, permissions)

    db.commit()
    db.refresh(subadmin)
    return old_username, subadmin


def delete_subadmin(db: Session, actor: Actor, subadmin_id: int) -> str:
    """Delete a sub-admin and return its username."""
    ensure_allowed(actor, Action.MANAGE_SUBADMINS)
    subadmin = get_subadmin(db, subadmin_id)
    username = subadmin.username
    db.delete(subadmin)
    db.commit()
    return username


def subadmin_to_dict(subadmin: SubAdmin) -> dict:
    """Public view of an account. The password hash never leaves this module."""
    return {
        "id": subadmin.id,
        "username": subadmin.username,
        "permissions": {
            **{flag: getattr(subadmin, flag) for flag in PERMISSION_FLAGS},
            "assigned_categories": sorted(c.id for c in subadmin.assigned_categories),
        },
        "created_at": subadmin.created_at,
    }
