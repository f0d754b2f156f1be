"""Base exception classes for dataroom access"""

from typing import Any, Dict, List, Optional


class DataroomAccessError(Exception):
    """Base exception for all dataroom access errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(DataroomAccessError):
    """Raised when configuration is invalid"""
    pass


class ItemNotFoundError(DataroomAccessError):
    """Raised when an edit targets an item that is not in the tree"""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(
            f"Item not found: {item_id}",
            {"item_id": item_id}
        )


class MalformedInputError(DataroomAccessError):
    """Raised when source records cannot form a rooted tree"""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(
            f"Malformed input: {'; '.join(errors)}",
            {"errors": errors}
        )


class InvariantViolationError(DataroomAccessError, AssertionError):
    """Raised when a permission state breaks a structural invariant.

    This is a programming error: normalization must make it unreachable.
    """

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(
            f"Invariant violated on item '{item_id}': {reason}",
            {
                "item_id": item_id,
                "reason": reason
            }
        )


class PersistenceFailedError(DataroomAccessError):
    """Raised when the persistence endpoint rejects or fails to store a batch"""

    def __init__(
        self,
        reason: str,
        status_code: Optional[int] = None,
        item_count: int = 0
    ):
        self.reason = reason
        self.status_code = status_code
        self.item_count = item_count
        super().__init__(
            f"Failed to persist permissions: {reason}",
            {
                "reason": reason,
                "status_code": status_code,
                "item_count": item_count
            }
        )
