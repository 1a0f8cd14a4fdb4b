"""Error taxonomy for query profile analysis.

Only structural faults reach these classes. A nested statistics field that
fails to decode is treated as absent by the record parser and never raised.
"""

from __future__ import annotations


class ProfileError(Exception):
    """Base class for errors surfaced by the diagnostic engine."""

    default_message = "Query profile analysis failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ProfileError):
    """Raised when the query identifier is not UUID-shaped."""

    default_message = "Invalid Query ID format. Please provide a valid UUID."


class NotFoundError(ProfileError):
    """Raised when a valid query identifier has no operator statistics."""

    default_message = "No operator statistics found for the provided Query ID."


class InternalError(ProfileError):
    """Raised for malformed operator rows that cannot be assembled."""
