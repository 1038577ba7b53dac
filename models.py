from sqlalchemy import Column, Integer, String, DateTime, Date, Boolean, Text, ForeignKey, Table
from sqlalchemy.orm import relationship
from datetime import datetime

# Import Base from database module to ensure consistency
from database import Base

subadmin_categories = Table(
    "subadmin_categories",
    Base.metadata,
    Column("subadmin_id", Integer, ForeignKey("subadmins.id"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id"), primary_key=True),
)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    donations = relationship("Donation", back_populates="category")
    subadmins = relationship(
        "SubAdmin", secondary=subadmin_categories, back_populates="assigned_categories"
    )


class Donation(Base):
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True)
    donor_name = Column(String, nullable=False)
    amount = Column(Integer, nullable=False, default=0)  # Whole rupees, 0 means pledged
    date = Column(Date, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    notes = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="approved", index=True)  # approved | pending
    created_at = Column(DateTime, default=datetime.utcnow)

    category = relationship("Category", back_populates="donations", lazy="joined")


class SubAdmin(Base):
    __tablename__ = "subadmins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    can_add_donation = Column(Boolean, nullable=False, default=True)
    can_edit_donation = Column(Boolean, nullable=False, default=False)
    can_delete_donation = Column(Boolean, nullable=False, default=False)
    can_manage_category = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    assigned_categories = relationship(
        "Category", secondary=subadmin_categories, back_populates="subadmins", lazy="selectin"
    )


class Settings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    admin_hashed_password = Column(String, nullable=False)
    view_mode = Column(String, nullable=False, default="cards")  # cards | list
    community_enabled = Column(Boolean, nullable=False, default=False)
    show_dates = Column(Boolean, nullable=False, default=True)


class ActivityLog(Base):
    """Write-once audit trail. Nothing in the application updates or deletes rows."""

    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, nullable=False)  # LOGIN, LOGIN_FAILED, ADD, EDIT, DELETE, APPROVE, REORDER
    entity = Column(String, nullable=False)  # AUTH, DONATION, CATEGORY, SUBADMIN, SETTINGS, COMMUNITY
    entity_id = Column(String, nullable=True)
    details = Column(Text, nullable=False)
    user = Column(String, nullable=False)
    user_type = Column(String, nullable=False)  # admin | subadmin
    ip_address = Column(String, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)


class CommunityPost(Base):
    __tablename__ = "community_posts"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(String(500), nullable=False)
    image_url = Column(String, nullable=False, default="")
    ip_address = Column(String, nullable=False)
    user_agent = Column(String, nullable=True)
    is_visible = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    replies = relationship(
        "CommunityReply",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="CommunityReply.id",
        lazy="selectin",
    )


class CommunityReply(Base):
    __tablename__ = "community_replies"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("community_posts.id"), nullable=False, index=True)
    content = Column(String(300), nullable=False)
    ip_address = Column(String, nullable=False)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    post = relationship("CommunityPost", back_populates="replies")
