"""
Append-only activity log.

Recording is best effort: a failure to write an entry is reported to the
operator log and never propagates to the caller, and the action that
triggered it stays committed.
"""

import logging
from typing import Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from models import ActivityLog
from permissions import Actor, ActorKind

logger = logging.getLogger(__name__)

# Action kinds
LOGIN = "LOGIN"
LOGIN_FAILED = "LOGIN_FAILED"
ADD = "ADD"
EDIT = "EDIT"
DELETE = "DELETE"
APPROVE = "APPROVE"
REORDER = "REORDER"

# Entity kinds
AUTH = "AUTH"
DONATION = "DONATION"
CATEGORY = "CATEGORY"
SUBADMIN = "SUBADMIN"
SETTINGS = "SETTINGS"
COMMUNITY = "COMMUNITY"


def record_activity(
    db: Session,
    actor: Actor,
    action: str,
    entity: str,
    details: str,
    entity_id=None,
    ip_address: Optional[str] = None,
) -> Optional[ActivityLog]:
    """
    Append one entry to the activity log.

    Returns:
        The stored entry, or None if it could not be written
    """
    try:
        entry = ActivityLog(
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
            user=actor.username,
            user_type=ActorKind(actor.kind).value,
            ip_address=ip_address or "unknown",
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception:
        logger.exception(f"Failed to record activity {action} {entity} by {actor.username}")
        try:
            db.rollback()
        except Exception:
            logger.exception("Rollback after failed activity record also failed")
        return None


def list_activity(db: Session, page: int = 1, limit: int = 50) -> dict:
    """Return one page of entries, newest first, with pagination metadata."""
    total = db.query(ActivityLog).count()
    logs = (
        db.query(ActivityLog)
        .order_by(desc(ActivityLog.timestamp), desc(ActivityLog.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "logs": logs,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }
