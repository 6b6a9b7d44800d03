"""
Wire schema versioning.

Readers accept any minor version within a supported major version; a major
version change means the layout is no longer readable by this code.
"""

from __future__ import annotations

import logging

from mlprofile.errors import SchemaVersionError

logger = logging.getLogger(__name__)

SCHEMA_MAJOR_VERSION = 1
SCHEMA_MINOR_VERSION = 2

SUPPORTED_MAJOR_VERSIONS = frozenset({SCHEMA_MAJOR_VERSION})


def validate_schema(major: int, minor: int) -> None:
    """
    Raise SchemaVersionError unless *major* is readable.

    A differing minor version is accepted (forward-compatible within a
    major version).
    """
    if major not in SUPPORTED_MAJOR_VERSIONS:
        raise SchemaVersionError(
            f"Unsupported schema version {major}.{minor}; "
            f"this reader supports major version(s) "
            f"{sorted(SUPPORTED_MAJOR_VERSIONS)}"
        )
    if minor != SCHEMA_MINOR_VERSION:
        logger.debug(
            "Reading schema version %d.%d with reader version %d.%d",
            major, minor, SCHEMA_MAJOR_VERSION, SCHEMA_MINOR_VERSION,
        )
