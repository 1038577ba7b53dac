"""
Donation record lifecycle.

Admins create approved records; sub-admins create pending ones that must carry
an amount and a date. Approval is one-way. Every function takes the acting
user explicitly and checks it before touching storage.
"""

from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from categories import get_category
from exceptions import NotFoundError, ValidationFailure
from models import Donation
from permissions import Action, Actor, ensure_allowed, visible_category_filter

STATUS_APPROVED = "approved"
STATUS_PENDING = "pending"
STATUSES = (STATUS_APPROVED, STATUS_PENDING)

EDITABLE_FIELDS = ("donor_name", "amount", "date", "category_id", "notes")


def describe(donation: Donation) -> str:
    return f"{donation.donor_name} - ₹{donation.amount}"


def get_donation(db: Session, donation_id: int) -> Donation:
    donation = db.query(Donation).filter(Donation.id == donation_id).first()
    if not donation:
        raise NotFoundError("Donation", donation_id)
    return donation


def list_donations(db: Session, actor: Optional[Actor] = None, status: Optional[str] = None) -> List[Donation]:
    """
    Fetch raw donation records, newest date first.

    Sub-admins with assigned categories only see those categories.
    """
    if status and status not in STATUSES:
        raise ValidationFailure(f"Unknown status: {status}")

    query = db.query(Donation)
    if status:
        query = query.filter(Donation.status == status)

    allowed = visible_category_filter(actor)
    if allowed is not None:
        query = query.filter(Donation.category_id.in_(allowed))

    return query.order_by(desc(Donation.date), desc(Donation.id)).all()


def create_donation(
    db: Session,
    actor: Actor,
    donor_name: str,
    category_id: int,
    amount: Optional[int] = None,
    donation_date: Optional[date] = None,
    notes: str = "",
) -> Donation:
    """
    Create a donation with the status implied by the actor's role.

    Raises:
        PermissionDeniedError: actor may not add, or may not use the category
        ValidationFailure: a sub-admin left out the amount or the date
        NotFoundError: the category does not exist
    """
    ensure_allowed(actor, Action.ADD_DONATION)
    ensure_allowed(actor, Action.ACCESS_CATEGORY, category_id)

    if actor.is_admin:
        status = STATUS_APPROVED
    else:
        if amount is None or donation_date is None:
            raise ValidationFailure("Amount and Date are required for Sub-admins")
        status = STATUS_PENDING

    get_category(db, category_id)

    donation = Donation(
        donor_name=donor_name.strip(),
        amount=amount or 0,
        date=donation_date or date.today(),
        category_id=category_id,
        notes=notes or "",
        status=status,
    )
    db.add(donation)
    db.commit()
    db.refresh(donation)
    return donation


def update_donation(db: Session, actor: Actor, donation_id: int, changes: dict) -> Tuple[str, Donation]:
    """
    Apply field changes to a donation.

    Returns:
        The description of the record before the edit, and the updated record
    """
    ensure_allowed(actor, Action.EDIT_DONATION)
    donation = get_donation(db, donation_id)
    ensure_allowed(actor, Action.ACCESS_CATEGORY, donation.category_id)

    new_category = changes.get("category_id")
    if new_category is not None and new_category != donation.category_id:
        ensure_allowed(actor, Action.ACCESS_CATEGORY, new_category)
        get_category(db, new_category)

    before = describe(donation)
    for field_name in EDITABLE_FIELDS:
        value = changes.get(field_name)
        if value is None:
            continue
        if field_name == "notes":
            value = value.strip()
        setattr(donation, field_name, value)

    db.commit()
    db.refresh(donation)
    return before, donation


def approve_donation(db: Session, actor: Actor, donation_id: int) -> Tuple[bool, Donation]:
    """
    Move a pending donation to approved.

    Returns:
        Whether the status changed, and the record
    """
    ensure_allowed(actor, Action.APPROVE_DONATION)
    donation = get_donation(db, donation_id)
    if donation.status == STATUS_APPROVED:
        return False, donation

    donation.status = STATUS_APPROVED
    db.commit()
    db.refresh(donation)
    return True, donation


def delete_donation(db: Session, actor: Actor, donation_id: int) -> str:
    """Delete a donation and return its description."""
    ensure_allowed(actor, Action.DELETE_DONATION)
    donation = get_donation(db, donation_id)
    ensure_allowed(actor, Action.ACCESS_CATEGORY, donation.category_id)

    summary = describe(donation)
    db.delete(donation)
    db.commit()
    return summary
