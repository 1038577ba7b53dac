"""
Anonymous community board.

Moderation is a predicate handed in by the caller; BlocklistFilter is the
default one wired up in main.py.
"""

import re
from typing import Callable, Iterable, List

from sqlalchemy import desc
from sqlalchemy.orm import Session

from exceptions import NotFoundError, ValidationFailure
from models import CommunityPost, CommunityReply

MAX_POST_LENGTH = 500
MAX_REPLY_LENGTH = 300
PUBLIC_POST_LIMIT = 50

ContentFilter = Callable[[str], bool]

DEFAULT_BLOCKED_WORDS = (
    # Hindi abuse, romanized
    "chutiya", "madarchod", "bhenchod", "bhosdike", "gandu", "harami",
    "kutta", "kamina", "saala", "randi", "lavde", "gaandu",
    # English
    "fuck", "shit", "ass", "bitch", "bastard", "damn", "hell",
    "idiot", "stupid", "hate", "kill", "die", "death",
)


class BlocklistFilter:
    """Reject text containing any blocked word as a whole word, case-insensitively."""

    def __init__(self, words: Iterable[str] = DEFAULT_BLOCKED_WORDS):
        self.words = tuple(w.lower() for w in words)
        self._pattern = (
            re.compile(r"\b(" + "|".join(re.escape(w) for w in self.words) + r")\b", re.IGNORECASE)
            if self.words else None
        )

    def __call__(self, text: str) -> bool:
        if self._pattern is None:
            return True
        return self._pattern.search(text) is None


def allow_everything(text: str) -> bool:
    return True


def _clean_content(content: str, max_length: int, label: str, content_filter: ContentFilter) -> str:
    if not content or not content.strip():
        raise ValidationFailure(f"{label} content is required")
    if len(content) > max_length:
        raise ValidationFailure(f"{label} must be {max_length} characters or less")
    if not content_filter(content):
        raise ValidationFailure(
            f"Your {label.lower()} contains inappropriate content. Please be respectful."
        )
    return content.strip()


def list_visible_posts(db: Session, limit: int = PUBLIC_POST_LIMIT) -> List[CommunityPost]:
    return (
        db.query(CommunityPost)
        .filter(CommunityPost.is_visible == True)  # noqa: E712
        .order_by(desc(CommunityPost.created_at), desc(CommunityPost.id))
        .limit(limit)
        .all()
    )


def list_all_posts(db: Session) -> List[CommunityPost]:
    return db.query(CommunityPost).order_by(desc(CommunityPost.created_at), desc(CommunityPost.id)).all()


def create_post(
    db: Session,
    content: str,
    ip_address: str,
    user_agent: str = "",
    image_url: str = "",
    content_filter: ContentFilter = allow_everything,
) -> CommunityPost:
    text = _clean_content(content, MAX_POST_LENGTH, "Post", content_filter)
    post = CommunityPost(
        content=text,
        image_url=image_url or "",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def add_reply(
    db: Session,
    post_id: int,
    content: str,
    ip_address: str,
    user_agent: str = "",
    content_filter: ContentFilter = allow_everything,
) -> CommunityPost:
    text = _clean_content(content, MAX_REPLY_LENGTH, "Reply", content_filter)
    post = db.query(CommunityPost).filter(CommunityPost.id == post_id).first()
    if not post:
        raise NotFoundError("Post", post_id)

    post.replies.append(CommunityReply(content=text, ip_address=ip_address, user_agent=user_agent))
    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, post_id: int) -> None:
    post = db.query(CommunityPost).filter(CommunityPost.id == post_id).first()
    if not post:
        raise NotFoundError("Post", post_id)
    db.delete(post)
    db.commit()
