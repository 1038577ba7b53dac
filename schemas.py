from pydantic import BaseModel, Field, validator
from typing import List, Optional, Union
import datetime as dt
import re


def _required_text(v, label, max_length):
    if v is None or not v.strip():
        raise ValueError(f'{label} is required')
    v = v.strip()
    if len(v) > max_length:
        raise ValueError(f'{label} must be less than {max_length} characters')
    return v


def _check_username(v):
    if not v.strip():
        raise ValueError('Username is required')
    if len(v.strip()) < 3:
        raise ValueError('Username must be at least 3 characters')
    if not re.match(r'^[a-zA-Z0-9_]+$', v.strip()):
        raise ValueError('Username can only contain letters, numbers, and underscores')
    return v.strip()


def _check_password(v):
    if len(v) < 8:
        raise ValueError('Password must be at least 8 characters')
    return v


# Categories

class CategoryCreate(BaseModel):
    name: str

    @validator('name')
    def validate_name(cls, v):
        return _required_text(v, 'Category name', 100)


class CategoryUpdate(CategoryCreate):
    pass


class Category(BaseModel):
    id: int
    name: str
    order: int
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class CategoryOrder(BaseModel):
    id: int
    order: int


class CategoryReorder(BaseModel):
    orders: List[CategoryOrder]


# Donations

class DonationCreate(BaseModel):
    donor_name: str
    amount: Optional[int] = None
    date: Optional[dt.date] = None
    category_id: int
    notes: Optional[str] = ''

    @validator('donor_name')
    def validate_name(cls, v):
        return _required_text(v, 'Donor name', 100)

    @validator('amount')
    def validate_amount(cls, v):
        if v is not None and v < 0:
            raise ValueError('Amount cannot be negative')
        return v

    @validator('notes')
    def validate_notes(cls, v):
        return (v or '').strip()


class DonationUpdate(BaseModel):
    donor_name: Optional[str] = None
    amount: Optional[int] = None
    date: Optional[dt.date] = None
    category_id: Optional[int] = None
    notes: Optional[str] = None

    @validator('donor_name')
    def validate_name(cls, v):
        if v is None:
            return v
        return _required_text(v, 'Donor name', 100)

    @validator('amount')
    def validate_amount(cls, v):
        if v is not None and v < 0:
            raise ValueError('Amount cannot be negative')
        return v


class Donation(BaseModel):
    id: int
    donor_name: str
    amount: int
    date: dt.date
    category_id: int
    category: Optional[Category] = None
    notes: str
    status: str
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class ImportResult(BaseModel):
    success_count: int
    error_count: int
    errors: List[str] = []


# Donor aggregates

class DonorHistoryEntry(BaseModel):
    amount: int
    date: Optional[dt.date] = None
    notes: str = ''


class Donor(BaseModel):
    donor_name: str
    category_id: Union[int, str]
    category_name: str
    total: int
    date: Optional[dt.date] = None
    notes: str = ''
    payment_status: str
    history: List[DonorHistoryEntry]


class DonorSection(BaseModel):
    category: Category
    donors: List[Donor]


# Sub-admins

class SubAdminPermissions(BaseModel):
    can_add_donation: bool = True
    can_edit_donation: bool = False
    can_delete_donation: bool = False
    can_manage_category: bool = False
    assigned_categories: List[int] = []


class SubAdminCreate(BaseModel):
    username: str
    password: str
    permissions: SubAdminPermissions = SubAdminPermissions()

    @validator('username')
    def validate_username(cls, v):
        return _check_username(v)

    @validator('password')
    def validate_password(cls, v):
        return _check_password(v)


class SubAdminUpdate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    permissions: Optional[SubAdminPermissions] = None

    @validator('username')
    def validate_username(cls, v):
        if v is None:
            return v
        return _check_username(v)

    @validator('password')
    def validate_password(cls, v):
        # An empty password leaves the current one in place
        if not v:
            return None
        return _check_password(v)


class SubAdmin(BaseModel):
    id: int
    username: str
    permissions: SubAdminPermissions
    created_at: Optional[dt.datetime] = None


# Authentication

class LoginRequest(BaseModel):
    username: str
    password: str


class UserProfile(BaseModel):
    type: str
    username: str
    id: Optional[int] = None
    permissions: Optional[SubAdminPermissions] = None


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserProfile


class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @validator('new_password')
    def validate_new_password(cls, v):
        if len(v) < 8:
            raise ValueError('New password must be at least 8 characters')
        return v


# Settings

class SettingsOut(BaseModel):
    view_mode: str
    community_enabled: bool
    show_dates: bool

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    view_mode: Optional[str] = Field(None, pattern='^(cards|list)$')


class CommunityToggle(BaseModel):
    enabled: bool


class ShowDatesToggle(BaseModel):
    show_dates: bool


# Activity log

class ActivityLogEntry(BaseModel):
    id: int
    action: str
    entity: str
    entity_id: Optional[str] = None
    details: str
    user: str
    user_type: str
    ip_address: Optional[str] = None
    timestamp: dt.datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ActivityLogPage(BaseModel):
    logs: List[ActivityLogEntry]
    pagination: Pagination


# Stats

class Stats(BaseModel):
    total_donations: int
    total_donors: int
    total_amount: int
    total_categories: int
    pending_count: int


# Community

class PostCreate(BaseModel):
    content: str
    image_url: Optional[str] = ''


class ReplyCreate(BaseModel):
    content: str


class Reply(BaseModel):
    id: int
    content: str
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class Post(BaseModel):
    id: int
    content: str
    image_url: str
    created_at: Optional[dt.datetime] = None
    replies: List[Reply] = []

    class Config:
        from_attributes = True


class AdminReply(Reply):
    ip_address: str
    user_agent: Optional[str] = None


class AdminPost(Post):
    ip_address: str
    user_agent: Optional[str] = None
    is_visible: bool
    replies: List[AdminReply] = []
