"""
Bulk export and import of donation data.

Exports go through pandas so the same frame can be written as CSV or Excel.
Imports read a three-column CSV (name, amount, date) and create each row
through the normal donation rules, counting failures instead of aborting.
"""

import logging
import math
from datetime import datetime
from io import BytesIO, StringIO
from typing import Iterable, List, Optional, Tuple

import pandas as pd
from sqlalchemy.orm import Session

import activity_log
from donations import create_donation, describe
from exceptions import DonationTrackerError, ValidationFailure
from permissions import Action, Actor, ensure_allowed

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["Donor Name", "Amount", "Date", "Category", "Notes", "Status", "Created At"]

MAX_AMOUNT = 2 ** 63 - 1

MEDIA_TYPES = {
    "csv": "text/csv",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def donations_dataframe(donations: Iterable) -> pd.DataFrame:
    data = []
    for d in donations:
        data.append({
            "Donor Name": d.donor_name,
            "Amount": d.amount,
            "Date": d.date.strftime("%Y-%m-%d") if d.date else "",
            "Category": d.category.name if d.category else "",
            "Notes": d.notes or "",
            "Status": d.status,
            "Created At": d.created_at.strftime("%Y-%m-%d %H:%M:%S") if d.created_at else "",
        })
    return pd.DataFrame(data, columns=EXPORT_COLUMNS)


def export_donations(donations: Iterable, fmt: str = "csv") -> Tuple[BytesIO, str, str]:
    """
    Render donations as a CSV or Excel file held in memory.

    Returns:
        The file buffer positioned at the start, its media type and a filename
    """
    if fmt not in MEDIA_TYPES:
        raise ValidationFailure(f"Unsupported export format: {fmt}")

    df = donations_dataframe(donations)
    filename = f"donations_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{'csv' if fmt == 'csv' else 'xlsx'}"

    output = BytesIO()
    if fmt == "excel":
        df.to_excel(output, index=False, engine="openpyxl")
    else:
        df.to_csv(output, index=False)
    output.seek(0)

    return output, MEDIA_TYPES[fmt], filename


def backup_payload(categories: Iterable, donations: Iterable, subadmins: Iterable) -> dict:
    """JSON-ready snapshot of the data an admin can restore from. Credentials are left out."""
    return {
        "categories": [
            {"id": c.id, "name": c.name, "order": c.order}
            for c in categories
        ],
        "donations": [
            {
                "id": d.id,
                "donor_name": d.donor_name,
                "amount": d.amount,
                "date": d.date.isoformat() if d.date else None,
                "category_id": d.category_id,
                "notes": d.notes,
                "status": d.status,
            }
            for d in donations
        ],
        "subadmins": [
            {
                "id": s.id,
                "username": s.username,
                "permissions": {
                    "can_add_donation": s.can_add_donation,
                    "can_edit_donation": s.can_edit_donation,
                    "can_delete_donation": s.can_delete_donation,
                    "can_manage_category": s.can_manage_category,
                    "assigned_categories": [c.id for c in s.assigned_categories],
                },
            }
            for s in subadmins
        ],
        "exported_at": datetime.utcnow().isoformat(),
    }


def parse_import_csv(content: bytes, has_headers: bool = True) -> List[dict]:
    """Read name, amount and date from the first three columns of a CSV file."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationFailure("CSV file must be UTF-8 encoded")

    try:
        df = pd.read_csv(
            StringIO(text),
            header=0 if has_headers else None,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError:
        raise ValidationFailure("No valid data found in CSV")
    except pd.errors.ParserError as e:
        raise ValidationFailure(f"Could not parse CSV: {e}")

    if df.shape[1] < 3:
        raise ValidationFailure("CSV must have name, amount and date columns")

    rows = []
    for values in df.iloc[:, :3].itertuples(index=False):
        name, amount, when = (str(v).strip() for v in values)
        if not (name or amount or when):
            continue
        rows.append({"name": name, "amount": amount, "date": when})

    if not rows:
        raise ValidationFailure("No valid data found in CSV")
    return rows


def _parse_amount(raw: str) -> Optional[int]:
    if not raw:
        return None
    try:
        value = float(raw.replace(",", ""))
    except ValueError:
        raise ValidationFailure(f"Invalid amount '{raw}'")
    # Whole rupees only: no nan, inf, negatives, fractions or values SQLite cannot store
    if not math.isfinite(value) or value < 0 or value != int(value) or int(value) > MAX_AMOUNT:
        raise ValidationFailure(f"Invalid amount '{raw}'")
    return int(value)


def _parse_date(raw: str):
    if not raw:
        return None
    try:
        parsed = pd.to_datetime(raw, dayfirst=False)
    except (ValueError, OverflowError):
        raise ValidationFailure(f"Invalid date '{raw}'")
    if pd.isna(parsed):
        raise ValidationFailure(f"Invalid date '{raw}'")
    return parsed.date()


def import_donations(
    db: Session,
    actor: Actor,
    category_id: int,
    rows: Iterable[dict],
    ip_address: Optional[str] = None,
):
    """
    Create one donation per parsed CSV row.

    Each created row gets its activity log entry straight away, so a later
    failure never leaves a committed donation unlogged.

    Returns:
        The created donations, and a list of per-row error messages
    """
    ensure_allowed(actor, Action.ADD_DONATION)
    ensure_allowed(actor, Action.ACCESS_CATEGORY, category_id)

    created = []
    errors = []
    for line_number, row in enumerate(rows, start=1):
        try:
            if not row["name"]:
                raise ValidationFailure("Donor name is required")
            donation = create_donation(
                db,
                actor,
                donor_name=row["name"],
                category_id=category_id,
                amount=_parse_amount(row["amount"]),
                donation_date=_parse_date(row["date"]),
            )
        except DonationTrackerError as e:
            db.rollback()
            errors.append(f"Row {line_number}: {e}")
            logger.warning(f"Skipped import row {line_number}: {e}")
            continue
        activity_log.record_activity(
            db, actor, activity_log.ADD, activity_log.DONATION,
            f"Imported donation ({donation.status}): {describe(donation)}",
            entity_id=donation.id, ip_address=ip_address,
        )
        created.append(donation)

    return created, errors
