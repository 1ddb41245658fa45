# obituary_search/errors.py
from typing import Dict, List, Optional

from pydantic import ValidationError


class SearchError(Exception):
    """Base class for every error the search services raise to their callers."""


class InvalidInput(SearchError):
    """
    The request failed schema validation. Nothing was queried.
    `errors` holds one {"loc", "msg"} entry per offending field.
    """
    def __init__(self, message: str = "Invalid search input.", errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    @classmethod
    def from_validation_error(cls, exc: ValidationError, message: str = "Invalid search input.") -> "InvalidInput":
        errors = [
            {"loc": ".".join(str(part) for part in error["loc"]) or "body", "msg": error["msg"]}
            for error in exc.errors()
        ]
        return cls(message, errors)


class SearchFailed(SearchError):
    """The underlying read failed. The message never carries storage details."""
    def __init__(self, message: str = "An unexpected error occurred during the search."):
        super().__init__(message)
        self.message = message


class ObituaryNotFound(SearchError):
    def __init__(self, reference: str):
        super().__init__(f"Obituary with reference '{reference}' not found")
        self.reference = reference


class StorageError(Exception):
    """Raised by storage adapters when a query cannot be executed."""
