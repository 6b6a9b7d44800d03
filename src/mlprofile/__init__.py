"""
mlprofile — mergeable dataset profiles for ML data-quality monitoring.

Public API
----------
Profiles:
    DatasetProfile            — column accumulators + grouping identity
    DatasetSummary            — flat read-only view (from core.types)
    ColumnProfile             — shipped column accumulator
    ColumnAccumulator         — Protocol every column accumulator satisfies

Model metrics:
    ModelMetrics              — classification xor regression block
    ModelType                 — variant tag

Wire format:
    ChunkedProfileWriter      — streaming multi-segment writer
    ProfileAssembler          — regroups segments by marker
    read_chunked_profiles     — read a whole chunked stream

Distributed fold/combine:
    AggregatorConfig          — job configuration
    DatasetProfileAggregator  — zero / reduce / merge / finish
    profile_records           — local driver
    profile_dataframe         — local driver over a dataframe

Errors:
    ProfileError and subclasses (see mlprofile.errors)
"""

from mlprofile._version import __version__
from mlprofile.aggregate.aggregator import (
    AggregatorConfig,
    ClassificationFields,
    DatasetProfileAggregator,
    RegressionFields,
)
from mlprofile.aggregate.local import profile_dataframe, profile_records
from mlprofile.core.column import ColumnAccumulator, ColumnProfile
from mlprofile.core.profile import DatasetProfile
from mlprofile.core.types import ColumnStats, DatasetSummary
from mlprofile.errors import (
    CorruptFrameError,
    InconsistentGroupingError,
    InconsistentTagsError,
    InconsistentTimestampError,
    MissingFieldError,
    ModelTypeMismatchError,
    ProfileError,
    SchemaVersionError,
    StructuralIntegrityError,
)
from mlprofile.metrics.model import ModelMetrics, ModelType
from mlprofile.wire.stream import (
    ChunkedProfileWriter,
    ProfileAssembler,
    read_chunked_profiles,
)

__all__ = [
    "__version__",
    # profiles
    "DatasetProfile",
    "DatasetSummary",
    "ColumnStats",
    "ColumnProfile",
    "ColumnAccumulator",
    # model metrics
    "ModelMetrics",
    "ModelType",
    # wire
    "ChunkedProfileWriter",
    "ProfileAssembler",
    "read_chunked_profiles",
    # fold/combine
    "AggregatorConfig",
    "ClassificationFields",
    "RegressionFields",
    "DatasetProfileAggregator",
    "profile_records",
    "profile_dataframe",
    # errors
    "ProfileError",
    "StructuralIntegrityError",
    "InconsistentGroupingError",
    "InconsistentTimestampError",
    "InconsistentTagsError",
    "ModelTypeMismatchError",
    "SchemaVersionError",
    "MissingFieldError",
    "CorruptFrameError",
]
