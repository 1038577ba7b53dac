from fastapi import FastAPI, Depends, HTTPException, status, UploadFile, File, Form, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from slowapi.util import get_remote_address
from datetime import date, datetime
from contextlib import asynccontextmanager
from typing import List, Optional
import json
import logging
import os

from database import engine, Base, get_db, SessionLocal
from models import Category as CategoryModel, Donation as DonationModel, Settings, SubAdmin as SubAdminModel
from schemas import (
    ActivityLogPage, AdminPost, Category, CategoryCreate, CategoryReorder, CategoryUpdate,
    CommunityToggle, Donation, DonationCreate, DonationUpdate, Donor, DonorSection,
    ImportResult, LoginRequest, PasswordChange, Post, PostCreate, ReplyCreate,
    SettingsOut, SettingsUpdate, ShowDatesToggle, Stats, SubAdmin, SubAdminCreate,
    SubAdminUpdate, Token, UserProfile
)
from auth import (
    ADMIN_DEFAULT_PASSWORD, ADMIN_USERNAME, authenticate, create_actor_token,
    get_password_hash, load_actor, verify_password, verify_token
)
from permissions import Action, Actor, ActorKind, ensure_allowed
from exceptions import (
    CategoryInUseError, ConflictError, NotFoundError, PermissionDeniedError, ReorderIncompleteError,
    ValidationFailure
)
from security_middleware import RequestSizeLimitMiddleware, SecurityHeadersMiddleware, setup_rate_limits
from websocket_manager import manager as ws_manager
from community import BlocklistFilter
import activity_log as audit
import categories as category_service
import community as community_service
import data_transfer
import donations as donation_service
import donors as donor_engine
import subadmins as subadmin_service

logger = logging.getLogger(__name__)

SEED_SAMPLE_DATA = os.getenv("SEED_SAMPLE_DATA", "true").lower() == "true"

SAMPLE_CATEGORIES = ["श्री राम नगर टोला", "हनुमान मंदिर मार्ग", "गणेश चौक"]
SAMPLE_DONATIONS = [
    ("श्री रामेश्वर प्रसाद", 51000, date(2024, 1, 15), 0, "मुख्य हॉल के लिए"),
    ("श्रीमती सीता देवी", 21000, date(2024, 1, 18), 0, ""),
    ("श्री मोहन लाल", 11000, date(2024, 1, 20), 1, "गर्भगृह निर्माण"),
    ("श्री राजेश कुमार", 5100, date(2024, 1, 22), 1, ""),
    ("श्रीमती गीता देवी", 25000, date(2024, 1, 25), 2, "मंदिर शिखर"),
    ("श्री अरुण शर्मा", 15000, date(2024, 2, 1), 2, ""),
]


def get_settings(db: Session) -> Settings:
    """Return the settings row, creating it with the default admin password on first use."""
    settings = db.query(Settings).first()
    if not settings:
        settings = Settings(admin_hashed_password=get_password_hash(ADMIN_DEFAULT_PASSWORD))
        db.add(settings)
        db.commit()
        db.refresh(settings)
        logger.info("Default settings created")
    return settings


def initialize_data(db: Session, seed_samples: bool = SEED_SAMPLE_DATA):
    get_settings(db)

    if not seed_samples or db.query(CategoryModel).count() > 0:
        return

    created = [CategoryModel(name=name, order=i + 1) for i, name in enumerate(SAMPLE_CATEGORIES)]
    db.add_all(created)
    db.flush()
    for donor_name, amount, when, category_index, notes in SAMPLE_DONATIONS:
        db.add(DonationModel(
            donor_name=donor_name,
            amount=amount,
            date=when,
            category_id=created[category_index].id,
            notes=notes,
            status=donation_service.STATUS_APPROVED,
        ))
    db.commit()
    logger.info("Sample categories and donations created")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up Temple Donation Tracker...")

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        initialize_data(db)
    finally:
        db.close()

    logger.info("Server ready to accept connections")

    yield

    logger.info("Shutting down server...")


app = FastAPI(
    title="Temple Donation Tracker",
    description="Donation records, donor totals and sub-admin permissions for temple committees",
    version="1.0.0",
    lifespan=lifespan,
)

# Pluggable moderation predicate for the community board
app.state.content_filter = BlocklistFilter()

limiter = setup_rate_limits(app)

app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# Domain failures to HTTP responses

@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    content = {"detail": str(exc)}
    if isinstance(exc, CategoryInUseError):
        content["donation_count"] = exc.donation_count
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=content)


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    logger.warning(f"Denied {exc.action.value} on {request.method} {request.url.path}")
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


# Security scheme
security = HTTPBearer(auto_error=False)


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[Actor]:
    if credentials is None:
        return None
    claims = verify_token(credentials.credentials)
    if claims is None:
        return None
    return load_actor(db, claims)


async def get_current_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def user_profile(actor: Actor) -> dict:
    profile = {"type": actor.kind.value, "username": actor.username}
    if actor.kind == ActorKind.SUBADMIN:
        perms = actor.permissions
        profile["id"] = actor.id
        profile["permissions"] = {
            "can_add_donation": perms.can_add_donation,
            "can_edit_donation": perms.can_edit_donation,
            "can_delete_donation": perms.can_delete_donation,
            "can_manage_category": perms.can_manage_category,
            "assigned_categories": sorted(perms.assigned_categories),
        }
    return profile


def donation_event(donation: DonationModel) -> dict:
    return {
        "id": donation.id,
        "donor_name": donation.donor_name,
        "amount": donation.amount,
        "date": donation.date.isoformat(),
        "category_id": donation.category_id,
        "status": donation.status,
    }


# Authentication

@app.post("/api/auth/login", response_model=Token)
@limiter.limit("5/minute")  # Max 5 login attempts per minute per IP
async def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)):
    """Log in as the main admin or a sub-admin."""
    ip = get_remote_address(request)
    actor = authenticate(db, credentials.username, credentials.password)

    if actor is None:
        attempted = Actor(
            kind=ActorKind.ADMIN if credentials.username == ADMIN_USERNAME else ActorKind.SUBADMIN,
            username=credentials.username or "unknown",
        )
        audit.record_activity(db, attempted, audit.LOGIN_FAILED, audit.AUTH,
                              f"Failed login attempt for '{credentials.username}'", ip_address=ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    details = "Admin logged in" if actor.is_admin else f"Sub-admin '{actor.username}' logged in"
    audit.record_activity(db, actor, audit.LOGIN, audit.AUTH, details, entity_id=actor.id, ip_address=ip)

    return {
        "access_token": create_actor_token(actor),
        "token_type": "bearer",
        "user": user_profile(actor),
    }


@app.get("/api/auth/me", response_model=UserProfile)
async def who_am_i(actor: Actor = Depends(get_current_actor)):
    return user_profile(actor)


# Public donor view

def _aggregated_donors(db: Session, search, category_id, payment_status):
    approved = donation_service.list_donations(db, status=donation_service.STATUS_APPROVED)
    ordered_categories = category_service.list_categories(db)
    names = {c.id: c.name for c in ordered_categories}

    donors = donor_engine.aggregate_donors(approved, known_categories=names)
    donors = donor_engine.filter_donors(donors, search, category_id, payment_status)
    return donors, ordered_categories, names


def _donor_to_dict(donor, category_names) -> dict:
    return {
        "donor_name": donor.donor_name,
        "category_id": donor.category_id,
        "category_name": category_names.get(donor.category_id, "Unknown"),
        "total": donor.total,
        "date": donor.date,
        "notes": donor.notes,
        "payment_status": donor.payment_status,
        "history": [
            {"amount": h.amount, "date": h.date, "notes": h.notes}
            for h in donor.history
        ],
    }


@app.get("/api/donors", response_model=List[Donor])
async def get_donors(
    search: str = Query(""),
    category_id: Optional[int] = Query(None),
    payment_status: str = Query("", pattern="^(paid|pledged)?$"),
    db: Session = Depends(get_db)
):
    """Approved donations grouped per donor, highest total first."""
    donors, _, names = _aggregated_donors(db, search, category_id, payment_status)
    return [_donor_to_dict(d, names) for d in donor_engine.sort_by_total(donors)]


@app.get("/api/donors/by-category", response_model=List[DonorSection])
async def get_donors_by_category(
    search: str = Query(""),
    payment_status: str = Query("", pattern="^(paid|pledged)?$"),
    db: Session = Depends(get_db)
):
    """Donor totals split into sections in category display order."""
    donors, ordered_categories, names = _aggregated_donors(db, search, None, payment_status)
    return [
        {
            "category": section["category"],
            "donors": [_donor_to_dict(d, names) for d in section["donors"]],
        }
        for section in donor_engine.group_by_category(donors, ordered_categories)
    ]


@app.get("/api/stats", response_model=Stats)
async def get_stats(db: Session = Depends(get_db)):
    approved = donation_service.list_donations(db, status=donation_service.STATUS_APPROVED)
    pending_count = db.query(DonationModel).filter(
        DonationModel.status == donation_service.STATUS_PENDING
    ).count()
    return {
        "total_donations": len(approved),
        "total_donors": len(donor_engine.aggregate_donors(approved)),
        "total_amount": sum(d.amount or 0 for d in approved),
        "total_categories": db.query(CategoryModel).count(),
        "pending_count": pending_count,
    }


# Donations (admin table)

@app.get("/api/donations", response_model=List[Donation])
async def get_donations(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(approved|pending)$"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Raw donation records for the admin table, newest first."""
    return donation_service.list_donations(db, actor, status_filter)


@app.post("/api/donations", response_model=Donation, status_code=status.HTTP_201_CREATED)
async def add_donation(
    request: Request,
    payload: DonationCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    donation = donation_service.create_donation(
        db,
        actor,
        donor_name=payload.donor_name,
        category_id=payload.category_id,
        amount=payload.amount,
        donation_date=payload.date,
        notes=payload.notes,
    )
    audit.record_activity(db, actor, audit.ADD, audit.DONATION,
                          f"Added donation ({donation.status}): {donation_service.describe(donation)}",
                          entity_id=donation.id, ip_address=get_remote_address(request))

    if donation.status == donation_service.STATUS_PENDING:
        await ws_manager.broadcast_donation_event("donation_pending", donation_event(donation))

    return donation


@app.post("/api/donations/import", response_model=ImportResult)
async def import_donations(
    request: Request,
    category_id: int = Form(...),
    has_headers: bool = Form(True),
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Import name, amount, date rows from a CSV file into one category."""
    rows = data_transfer.parse_import_csv(await file.read(), has_headers)
    created, errors = data_transfer.import_donations(
        db, actor, category_id, rows, ip_address=get_remote_address(request)
    )
    return {"success_count": len(created), "error_count": len(errors), "errors": errors}


@app.get("/api/donations/export")
async def export_donations(
    format: str = Query("csv", pattern="^(csv|excel|json)$"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Export donations as CSV or Excel, or a full JSON backup."""
    ensure_allowed(actor, Action.EXPORT_DATA)
    records = donation_service.list_donations(db, actor)

    if format == "json":
        return data_transfer.backup_payload(
            category_service.list_categories(db),
            records,
            db.query(SubAdminModel).order_by(SubAdminModel.id).all(),
        )

    output, media_type, filename = data_transfer.export_donations(records, format)
    return StreamingResponse(
        output,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@app.put("/api/donations/{donation_id}", response_model=Donation)
async def edit_donation(
    request: Request,
    donation_id: int,
    payload: DonationUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    before, donation = donation_service.update_donation(
        db, actor, donation_id, payload.dict(exclude_unset=True)
    )
    audit.record_activity(db, actor, audit.EDIT, audit.DONATION,
                          f"Edited donation: {before} → {donation_service.describe(donation)}",
                          entity_id=donation.id, ip_address=get_remote_address(request))
    return donation


@app.put("/api/donations/{donation_id}/approve", response_model=Donation)
async def approve_donation(
    request: Request,
    donation_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    changed, donation = donation_service.approve_donation(db, actor, donation_id)
    if changed:
        audit.record_activity(db, actor, audit.APPROVE, audit.DONATION,
                              f"Approved donation: {donation_service.describe(donation)}",
                              entity_id=donation.id, ip_address=get_remote_address(request))
        await ws_manager.broadcast_donation_event("donation_approved", donation_event(donation))
    return donation


@app.delete("/api/donations/{donation_id}")
async def delete_donation(
    request: Request,
    donation_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    summary = donation_service.delete_donation(db, actor, donation_id)
    audit.record_activity(db, actor, audit.DELETE, audit.DONATION, f"Deleted donation: {summary}",
                          entity_id=donation_id, ip_address=get_remote_address(request))
    return {"success": True, "message": "Donation deleted"}


# Categories

@app.get("/api/categories", response_model=List[Category])
async def get_categories(db: Session = Depends(get_db)):
    return category_service.list_categories(db)


@app.post("/api/categories", response_model=Category, status_code=status.HTTP_201_CREATED)
async def add_category(
    request: Request,
    payload: CategoryCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    ensure_allowed(actor, Action.MANAGE_CATEGORY)
    category = category_service.create_category(db, payload.name)
    audit.record_activity(db, actor, audit.ADD, audit.CATEGORY, f"Added category: {category.name}",
                          entity_id=category.id, ip_address=get_remote_address(request))
    return category


@app.put("/api/categories/reorder", response_model=List[Category])
async def reorder_categories(
    request: Request,
    payload: CategoryReorder,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Assign explicit order keys. Earlier assignments stay applied if a later id is unknown."""
    ensure_allowed(actor, Action.MANAGE_CATEGORY)
    orders = [(item.id, item.order) for item in payload.orders]
    try:
        ordered = category_service.reorder_categories(db, orders)
    except ReorderIncompleteError as e:
        if e.applied:
            _log_reorder(request, db, actor, e.applied, f" (stopped at unknown category {e.entity_id})")
        raise
    _log_reorder(request, db, actor, orders)
    return ordered


def _log_reorder(request: Request, db: Session, actor: Actor, applied, suffix: str = ""):
    changes = ", ".join(f"{category_id}→{order}" for category_id, order in applied)
    audit.record_activity(db, actor, audit.REORDER, audit.CATEGORY, f"Reordered categories: {changes}{suffix}",
                          ip_address=get_remote_address(request))


async def _move_category(request: Request, category_id: int, direction: str, actor: Actor, db: Session):
    ensure_allowed(actor, Action.MANAGE_CATEGORY)
    changes = category_service.move_category(db, category_id, direction)
    if changes:
        name = category_service.get_category(db, category_id).name
        audit.record_activity(db, actor, audit.REORDER, audit.CATEGORY, f"Moved category {direction}: {name}",
                              entity_id=category_id, ip_address=get_remote_address(request))
    return category_service.list_categories(db)


@app.put("/api/categories/{category_id}/move-up", response_model=List[Category])
async def move_category_up(
    request: Request,
    category_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return await _move_category(request, category_id, category_service.UP, actor, db)


@app.put("/api/categories/{category_id}/move-down", response_model=List[Category])
async def move_category_down(
    request: Request,
    category_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return await _move_category(request, category_id, category_service.DOWN, actor, db)


@app.put("/api/categories/{category_id}", response_model=Category)
async def edit_category(
    request: Request,
    category_id: int,
    payload: CategoryUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    ensure_allowed(actor, Action.MANAGE_CATEGORY)
    old_name, category = category_service.rename_category(db, category_id, payload.name)
    audit.record_activity(db, actor, audit.EDIT, audit.CATEGORY, f"Edited category: {old_name} → {category.name}",
                          entity_id=category.id, ip_address=get_remote_address(request))
    return category


@app.delete("/api/categories/{category_id}")
async def delete_category(
    request: Request,
    category_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    ensure_allowed(actor, Action.MANAGE_CATEGORY)
    name = category_service.delete_category(db, category_id)
    audit.record_activity(db, actor, audit.DELETE, audit.CATEGORY, f"Deleted category: {name}",
                          entity_id=category_id, ip_address=get_remote_address(request))
    return {"success": True, "message": "Category deleted"}


# Sub-admins

@app.get("/api/subadmins", response_model=List[SubAdmin])
async def get_subadmins(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return [subadmin_service.subadmin_to_dict(s) for s in subadmin_service.list_subadmins(db, actor)]


@app.post("/api/subadmins", response_model=SubAdmin, status_code=status.HTTP_201_CREATED)
async def add_subadmin(
    request: Request,
    payload: SubAdminCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    subadmin = subadmin_service.create_subadmin(
        db, actor, payload.username, payload.password, payload.permissions.dict()
    )
    audit.record_activity(db, actor, audit.ADD, audit.SUBADMIN, f"Created sub-admin: {subadmin.username}",
                          entity_id=subadmin.id, ip_address=get_remote_address(request))
    return subadmin_service.subadmin_to_dict(subadmin)


@app.put("/api/subadmins/{subadmin_id}", response_model=SubAdmin)
async def edit_subadmin(
    request: Request,
    subadmin_id: int,
    payload: SubAdminUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    old_username, subadmin = subadmin_service.update_subadmin(
        db,
        actor,
        subadmin_id,
        username=payload.username,
        password=payload.password,
        permissions=payload.permissions.dict() if payload.permissions else None,
    )
    audit.record_activity(db, actor, audit.EDIT, audit.SUBADMIN, f"Edited sub-admin: {old_username}",
                          entity_id=subadmin.id, ip_address=get_remote_address(request))
    return subadmin_service.subadmin_to_dict(subadmin)


@app.delete("/api/subadmins/{subadmin_id}")
async def delete_subadmin(
    request: Request,
    subadmin_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    username = subadmin_service.delete_subadmin(db, actor, subadmin_id)
    audit.record_activity(db, actor, audit.DELETE, audit.SUBADMIN, f"Deleted sub-admin: {username}",
                          entity_id=subadmin_id, ip_address=get_remote_address(request))
    return {"success": True, "message": "Sub-admin deleted"}


# Settings

@app.get("/api/settings", response_model=SettingsOut)
async def read_settings(db: Session = Depends(get_db)):
    return get_settings(db)


def _change_setting(request: Request, db: Session, actor: Actor, field: str, value, details: str) -> Settings:
    ensure_allowed(actor, Action.MANAGE_SETTINGS)
    settings = get_settings(db)
    setattr(settings, field, value)
    db.commit()
    db.refresh(settings)
    audit.record_activity(db, actor, audit.EDIT, audit.SETTINGS, details,
                          ip_address=get_remote_address(request))
    return settings


@app.put("/api/settings", response_model=SettingsOut)
async def update_settings(
    request: Request,
    payload: SettingsUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    ensure_allowed(actor, Action.MANAGE_SETTINGS)
    if payload.view_mode is None:
        return get_settings(db)
    return _change_setting(request, db, actor, "view_mode", payload.view_mode,
                           f"View mode changed to {payload.view_mode}")


@app.put("/api/settings/community", response_model=SettingsOut)
async def toggle_community(
    request: Request,
    payload: CommunityToggle,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return _change_setting(request, db, actor, "community_enabled", payload.enabled,
                           f"Community board {'enabled' if payload.enabled else 'disabled'}")


@app.put("/api/settings/show-dates", response_model=SettingsOut)
async def toggle_show_dates(
    request: Request,
    payload: ShowDatesToggle,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return _change_setting(request, db, actor, "show_dates", payload.show_dates,
                           f"Show dates {'enabled' if payload.show_dates else 'disabled'}")


@app.put("/api/settings/password")
async def change_password(
    request: Request,
    payload: PasswordChange,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Change the main admin password."""
    ensure_allowed(actor, Action.MANAGE_SETTINGS)
    settings = get_settings(db)

    if not verify_password(payload.current_password, settings.admin_hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    settings.admin_hashed_password = get_password_hash(payload.new_password)
    db.commit()
    audit.record_activity(db, actor, audit.EDIT, audit.SETTINGS, "Admin password changed",
                          ip_address=get_remote_address(request))

    return {"success": True, "message": "Password updated successfully"}


# Activity log (read-only, there is deliberately no write or delete route)

@app.get("/api/logs", response_model=ActivityLogPage)
async def get_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    ensure_allowed(actor, Action.VIEW_ACTIVITY_LOG)
    return audit.list_activity(db, page, limit)


# Community board

def _require_community_enabled(db: Session):
    if not get_settings(db).community_enabled:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Community feature is disabled")


@app.get("/api/community", response_model=List[Post])
async def get_community_posts(db: Session = Depends(get_db)):
    _require_community_enabled(db)
    return community_service.list_visible_posts(db)


@app.get("/api/community/admin", response_model=List[AdminPost])
async def get_all_community_posts(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    ensure_allowed(actor, Action.MODERATE_COMMUNITY)
    return community_service.list_all_posts(db)


@app.post("/api/community", response_model=Post, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_community_post(request: Request, payload: PostCreate, db: Session = Depends(get_db)):
    """Create an anonymous post."""
    _require_community_enabled(db)
    return community_service.create_post(
        db,
        payload.content,
        ip_address=get_remote_address(request),
        user_agent=request.headers.get("user-agent", ""),
        image_url=payload.image_url,
        content_filter=request.app.state.content_filter,
    )


@app.post("/api/community/{post_id}/reply", response_model=Post)
@limiter.limit("20/minute")
async def reply_to_post(request: Request, post_id: int, payload: ReplyCreate, db: Session = Depends(get_db)):
    _require_community_enabled(db)
    return community_service.add_reply(
        db,
        post_id,
        payload.content,
        ip_address=get_remote_address(request),
        user_agent=request.headers.get("user-agent", ""),
        content_filter=request.app.state.content_filter,
    )


@app.delete("/api/community/{post_id}")
async def delete_community_post(
    request: Request,
    post_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    ensure_allowed(actor, Action.MODERATE_COMMUNITY)
    community_service.delete_post(db, post_id)
    audit.record_activity(db, actor, audit.DELETE, audit.COMMUNITY, f"Deleted community post {post_id}",
                          entity_id=post_id, ip_address=get_remote_address(request))
    return {"success": True, "message": "Post deleted successfully"}


# WebSocket endpoint for real-time updates
@app.websocket("/ws/admin")
async def websocket_endpoint(websocket: WebSocket, token: str = Query(...)):
    """
    Real-time feed of pending and approved donations for the main admin.

    Usage: ws://localhost:8000/ws/admin?token=<jwt_token>
    """
    claims = verify_token(token)
    if not claims or claims["type"] != ActorKind.ADMIN.value or claims["sub"] != ADMIN_USERNAME:
        await websocket.close(code=1008, reason="Invalid authentication token")
        return

    admin_username = claims["sub"]
    await ws_manager.connect(websocket, admin_username)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "timestamp": datetime.now().isoformat()
                })
    except WebSocketDisconnect:
        ws_manager.disconnect(websocket, admin_username)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow(),
        "websocket_connections": ws_manager.get_connection_count(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
