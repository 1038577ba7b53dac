"""
Named failure conditions raised by the core modules.

The HTTP layer in main.py maps each of these onto a status code; the core
itself never imports FastAPI.
"""


class DonationTrackerError(Exception):
    """Base class for every domain failure."""


class ValidationFailure(DonationTrackerError):
    """Input was well-typed but violates a business rule."""


class NotFoundError(DonationTrackerError):
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class ConflictError(DonationTrackerError):
    """The requested change would break a referential or uniqueness rule."""


class CategoryInUseError(ConflictError):
    def __init__(self, category_id: int, donation_count: int):
        self.category_id = category_id
        self.donation_count = donation_count
        super().__init__(
            f"Cannot delete: {donation_count} donations exist in this category"
        )


class DuplicateUsernameError(ConflictError):
    def __init__(self, username: str):
        self.username = username
        super().__init__("Username already exists")


class PermissionDeniedError(DonationTrackerError):
    def __init__(self, action):
        self.action = action
        super().__init__("You do not have permission to perform this action")


class ReorderIncompleteError(NotFoundError):
    """A batch reorder hit an unknown category after applying some assignments."""

    def __init__(self, entity_id, applied):
        self.applied = applied
        super().__init__("Category", entity_id)
