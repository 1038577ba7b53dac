"""Unit tests for the community board."""

import pytest
from sqlalchemy.orm import Session

import community
from exceptions import NotFoundError, ValidationFailure
from models import CommunityPost, CommunityReply


def test_blocklist_matches_whole_words_only() -> None:
    content_filter = community.BlocklistFilter(["hell"])

    assert not content_filter("What the HELL is this")
    assert content_filter("Hello everyone, jai shri ram")
    assert content_filter("Shell temple donations")


def test_empty_blocklist_allows_everything() -> None:
    assert community.BlocklistFilter([])("anything at all")


def test_default_blocklist_rejects_abuse() -> None:
    assert not community.BlocklistFilter()("you idiot")


def test_create_post_strips_and_stores(db_session: Session) -> None:
    post = community.create_post(db_session, "  Jai Shri Ram  ", ip_address="1.2.3.4")
    assert post.content == "Jai Shri Ram"
    assert post.is_visible
    assert post.replies == []


@pytest.mark.parametrize("content", ["", "   "])
def test_blank_post_is_rejected(db_session: Session, content: str) -> None:
    with pytest.raises(ValidationFailure):
        community.create_post(db_session, content, ip_address="1.2.3.4")


def test_post_length_limit(db_session: Session) -> None:
    community.create_post(db_session, "a" * community.MAX_POST_LENGTH, ip_address="1.2.3.4")
    with pytest.raises(ValidationFailure, match="500 characters"):
        community.create_post(db_session, "a" * (community.MAX_POST_LENGTH + 1), ip_address="1.2.3.4")


def test_filtered_post_is_rejected(db_session: Session) -> None:
    with pytest.raises(ValidationFailure, match="inappropriate"):
        community.create_post(
            db_session, "you are stupid", ip_address="1.2.3.4",
            content_filter=community.BlocklistFilter(),
        )
    assert db_session.query(CommunityPost).count() == 0


def test_reply_is_appended_in_order(db_session: Session) -> None:
    post = community.create_post(db_session, "Bhandara on Sunday?", ip_address="1.2.3.4")

    community.add_reply(db_session, post.id, "Yes, after aarti", ip_address="5.6.7.8")
    post = community.add_reply(db_session, post.id, "Thank you", ip_address="1.2.3.4")

    assert [r.content for r in post.replies] == ["Yes, after aarti", "Thank you"]


def test_reply_length_limit(db_session: Session) -> None:
    post = community.create_post(db_session, "Question", ip_address="1.2.3.4")
    with pytest.raises(ValidationFailure):
        community.add_reply(db_session, post.id, "b" * (community.MAX_REPLY_LENGTH + 1), ip_address="1.2.3.4")


def test_reply_to_missing_post(db_session: Session) -> None:
    with pytest.raises(NotFoundError):
        community.add_reply(db_session, 404, "hello", ip_address="1.2.3.4")


def test_delete_post_removes_replies(db_session: Session) -> None:
    post = community.create_post(db_session, "Question", ip_address="1.2.3.4")
    community.add_reply(db_session, post.id, "Answer", ip_address="1.2.3.4")

    community.delete_post(db_session, post.id)

    assert db_session.query(CommunityPost).count() == 0
    assert db_session.query(CommunityReply).count() == 0


def test_hidden_posts_are_only_listed_for_moderators(db_session: Session) -> None:
    shown = community.create_post(db_session, "Visible", ip_address="1.2.3.4")
    hidden = community.create_post(db_session, "Hidden", ip_address="1.2.3.4")
    hidden.is_visible = False
    db_session.commit()

    assert [p.id for p in community.list_visible_posts(db_session)] == [shown.id]
    assert {p.id for p in community.list_all_posts(db_session)} == {shown.id, hidden.id}
