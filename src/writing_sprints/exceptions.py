"""Custom exceptions for sprint tracking.

This module defines a hierarchy of exceptions for the failure modes of a poll,
so hosts can tell corrupted state apart from an unreachable backend.
"""


class SprintTrackerError(Exception):
    """Base exception for all sprint tracking errors."""


class StateError(SprintTrackerError):
    """Raised when tracking state cannot be loaded or saved."""


class MalformedStateError(StateError):
    """Raised when persisted state holds a value that cannot be parsed."""


class StoreUnavailableError(StateError):
    """Raised when the key-value backend cannot be read or written."""


class DocumentUnavailableError(SprintTrackerError):
    """Raised when the document text cannot be read."""


class ConfigError(SprintTrackerError):
    """Raised when configuration is invalid or cannot be loaded."""
