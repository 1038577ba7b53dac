"""
Category ordering and lifecycle.

Display order is an integer key per category. Moving a category swaps its
key with the neighbour's instead of renumbering the list, so a move always
costs exactly two writes. Keys need not be contiguous or unique; ties fall
back to creation time and then id.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Sequence, Tuple

from sqlalchemy.orm import Session

from exceptions import CategoryInUseError, NotFoundError, ReorderIncompleteError
from models import Category, Donation

logger = logging.getLogger(__name__)

UP = "up"
DOWN = "down"


def _sort_key(category):
    return (category.order, category.created_at or datetime.min, category.id or 0)


def sort_categories(categories: Iterable) -> List:
    """Return categories ascending by order key, stable on ties."""
    return sorted(categories, key=_sort_key)


def next_order_key(categories: Iterable) -> int:
    orders = [c.order for c in categories]
    return max(orders) + 1 if orders else 1


def plan_move(categories: Sequence, category_id: int, direction: str) -> List[Tuple[int, int]]:
    """
    Work out the order-key exchange for moving one category.

    Returns:
        List of (category_id, new_order) pairs. Empty when the category is
        already first (moving up) or last (moving down).
    """
    if direction not in (UP, DOWN):
        raise ValueError(f"direction must be '{UP}' or '{DOWN}'")

    ordered = sort_categories(categories)
    index = next((i for i, c in enumerate(ordered) if c.id == category_id), None)
    if index is None:
        raise NotFoundError("Category", category_id)

    neighbour_index = index - 1 if direction == UP else index + 1
    if neighbour_index < 0 or neighbour_index >= len(ordered):
        return []

    current, neighbour = ordered[index], ordered[neighbour_index]
    return [(current.id, neighbour.order), (neighbour.id, current.order)]


# Storage-facing operations

def list_categories(db: Session) -> List[Category]:
    return sort_categories(db.query(Category).all())


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("Category", category_id)
    return category


def create_category(db: Session, name: str) -> Category:
    category = Category(name=name, order=next_order_key(db.query(Category).all()))
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def rename_category(db: Session, category_id: int, name: str) -> Tuple[str, Category]:
    """Rename a category and return its previous name with the updated row."""
    category = get_category(db, category_id)
    old_name = category.name
    category.name = name
    db.commit()
    db.refresh(category)
    return old_name, category


def delete_category(db: Session, category_id: int) -> str:
    """Delete a category that no donation references and return its name."""
    category = get_category(db, category_id)
    donation_count = db.query(Donation).filter(Donation.category_id == category_id).count()
    if donation_count > 0:
        raise CategoryInUseError(category_id, donation_count)

    name = category.name
    db.delete(category)
    db.commit()
    return name


def move_category(db: Session, category_id: int, direction: str) -> List[Tuple[int, int]]:
    """Swap a category with its neighbour in a single transaction."""
    changes = plan_move(db.query(Category).all(), category_id, direction)
    if not changes:
        return changes

    for changed_id, new_order in changes:
        db.query(Category).filter(Category.id == changed_id).update({Category.order: new_order})
    db.commit()
    logger.info(f"Moved category {category_id} {direction}: {changes}")
    return changes


def reorder_categories(db: Session, orders: Iterable[Tuple[int, int]]) -> List[Category]:
    """
    Apply explicit order keys one at a time.

    Each assignment is committed on its own. An unknown id raises
    ReorderIncompleteError carrying the assignments applied before it, which
    stay in place.
    """
    applied = []
    for category_id, new_order in orders:
        try:
            category = get_category(db, category_id)
        except NotFoundError:
            raise ReorderIncompleteError(category_id, applied)
        category.order = new_order
        db.commit()
        applied.append((category_id, new_order))
    return list_categories(db)
