"""Exception types shared across the tracker."""

from __future__ import annotations


class DevclockError(Exception):
    """Base class for tracker errors."""


class StorageError(DevclockError):
    """The persistence backend could not read or write the document."""


class ImportValidationError(DevclockError):
    """An import payload failed version or shape validation."""
