"""
Exception hierarchy for mlprofile.

Every error raised by the core derives from ProfileError so callers (and
distributed engines driving the fold/combine contract) can catch the whole
family at once.  Several classes also derive from the matching builtin so
code that already expects ValueError / KeyError / TypeError keeps working.

    ProfileError
    ├── StructuralIntegrityError     required field absent; construction bug
    ├── InconsistentGroupingError    (ValueError) mismatched group identity
    │   ├── InconsistentTimestampError
    │   └── InconsistentTagsError
    ├── ModelTypeMismatchError       (TypeError) classification vs regression
    ├── SchemaVersionError           unsupported wire major version
    ├── MissingFieldError            (KeyError) declared field absent in record
    └── CorruptFrameError            (ValueError) undecodable or truncated frame
"""

from __future__ import annotations

from typing import Any


class ProfileError(Exception):
    """Base class for all mlprofile errors."""


class StructuralIntegrityError(ProfileError):
    """A required profile field is missing.  Never retried."""


class InconsistentGroupingError(ProfileError, ValueError):
    """
    Two profiles (or a profile and a record) disagree on group identity.

    Attributes
    ----------
    field    : name of the conflicting property, e.g. "tags"
    previous : value held by the existing profile / left operand
    current  : value carried by the incoming record / right operand
    """

    def __init__(self, field: str, previous: Any, current: Any) -> None:
        self.field = field
        self.previous = previous
        self.current = current
        super().__init__(
            f"Mismatched {field}. Previously seen: [{previous}]. "
            f"Current: [{current}]"
        )


class InconsistentTimestampError(InconsistentGroupingError):
    """Records or profiles from different time buckets were combined."""


class InconsistentTagsError(InconsistentGroupingError):
    """Records or profiles with different grouping tags were combined."""


class ModelTypeMismatchError(ProfileError, TypeError):
    """Model metrics of different variants cannot be merged."""


class SchemaVersionError(ProfileError):
    """The wire payload uses a schema major version this reader cannot read."""


class MissingFieldError(ProfileError, KeyError):
    """A field the caller declared is absent from a record."""

    def __init__(self, field: str, available: Any = None) -> None:
        self.field = field
        self.available = available
        message = f"Field {field!r} not found in record"
        if available is not None:
            message += f" (available: {sorted(map(str, available))})"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0])


class CorruptFrameError(ProfileError, ValueError):
    """A wire frame could not be read or decoded."""
