"""
Donor aggregation and search.

Raw donation records are grouped into one DonorAggregate per
(normalized donor name, category). The filter functions then narrow a list of
aggregates by free text, category and payment status. Everything in this
module works on plain objects passed in by the caller.
"""

from dataclasses import dataclass, field
import datetime as dt
from typing import Any, Dict, Iterable, List, Optional

from exceptions import ValidationFailure
from transliteration import transliterate

UNKNOWN_CATEGORY = "unknown"

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PLEDGED = "pledged"
PAYMENT_STATUSES = ("", PAYMENT_STATUS_PAID, PAYMENT_STATUS_PLEDGED)


@dataclass
class HistoryEntry:
    amount: int
    date: Optional[dt.date]
    notes: str


@dataclass
class DonorAggregate:
    donor_name: str
    category_id: Any
    total: int = 0
    date: Optional[dt.date] = None
    notes: str = ""
    history: List[HistoryEntry] = field(default_factory=list)

    @property
    def payment_status(self) -> str:
        return PAYMENT_STATUS_PAID if self.total > 0 else PAYMENT_STATUS_PLEDGED


def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


def _category_key(record, known_categories):
    category_id = getattr(record, "category_id", None)
    if category_id is None:
        return UNKNOWN_CATEGORY
    if known_categories is not None and category_id not in known_categories:
        return UNKNOWN_CATEGORY
    return category_id


def _is_later(candidate: Optional[dt.date], current: Optional[dt.date]) -> bool:
    # Strictly later only, so the first-seen date wins a tie
    if candidate is None:
        return False
    if current is None:
        return True
    return candidate > current


def aggregate_donors(records: Iterable[Any], known_categories=None) -> List[DonorAggregate]:
    """
    Group donation records into per-donor, per-category aggregates.

    Args:
        records: Approved donation records exposing donor_name, amount, date,
            category_id and notes
        known_categories: Optional collection of category ids that resolve.
            Records pointing anywhere else are grouped under "unknown".

    Returns:
        List[DonorAggregate]: One aggregate per grouping key, in first-seen order
    """
    grouped: Dict[tuple, DonorAggregate] = {}

    for record in records:
        category = _category_key(record, known_categories)
        key = (normalize_name(record.donor_name), category)
        amount = record.amount or 0
        notes = getattr(record, "notes", None) or ""

        donor = grouped.get(key)
        if donor is None:
            donor = DonorAggregate(
                donor_name=(record.donor_name or "").strip(),
                category_id=category,
                date=record.date,
            )
            grouped[key] = donor
        elif _is_later(record.date, donor.date):
            donor.date = record.date

        donor.total += amount
        donor.notes = notes
        donor.history.append(HistoryEntry(amount=amount, date=record.date, notes=notes))

    return list(grouped.values())


def matches_search(donor: DonorAggregate, term: Optional[str]) -> bool:
    if not term:
        return True
    needle = term.lower()
    name = donor.donor_name.lower()
    if needle in name:
        return True
    return needle in transliterate(donor.donor_name)


def matches_category(donor: DonorAggregate, category_id) -> bool:
    if category_id is None or category_id == "":
        return True
    return donor.category_id == category_id


def matches_payment_status(donor: DonorAggregate, payment_status: Optional[str]) -> bool:
    if not payment_status:
        return True
    if payment_status == PAYMENT_STATUS_PAID:
        return donor.total > 0
    if payment_status == PAYMENT_STATUS_PLEDGED:
        return donor.total == 0
    raise ValidationFailure(f"Unknown payment status: {payment_status}")


def filter_donors(
    donors: Iterable[DonorAggregate],
    search: Optional[str] = None,
    category_id=None,
    payment_status: Optional[str] = None,
) -> List[DonorAggregate]:
    """Apply search, category and payment-status filters together."""
    if payment_status and payment_status not in PAYMENT_STATUSES:
        raise ValidationFailure(f"Unknown payment status: {payment_status}")

    return [
        d for d in donors
        if matches_search(d, search)
        and matches_category(d, category_id)
        and matches_payment_status(d, payment_status)
    ]


def sort_by_total(donors: Iterable[DonorAggregate]) -> List[DonorAggregate]:
    return sorted(donors, key=lambda d: d.total, reverse=True)


def group_by_category(donors: Iterable[DonorAggregate], ordered_categories) -> List[dict]:
    """
    Split donors into sections following the category display order.

    Categories with no matching donors are left out. Each section is sorted by
    total, highest first.
    """
    buckets: Dict[Any, List[DonorAggregate]] = {}
    for donor in donors:
        buckets.setdefault(donor.category_id, []).append(donor)

    sections = []
    for category in ordered_categories:
        members = buckets.get(category.id)
        if members:
            sections.append({"category": category, "donors": sort_by_total(members)})
    return sections
