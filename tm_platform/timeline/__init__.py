# Public surface of the timeline package.
from ._types import LibraryEntry, LibraryOps, TimelineItem, Universe, UniverseState
from ._errors import (
    CollectionWriteError,
    IndexBuildError,
    InvalidStateError,
    TimelineError,
    UniverseValidationError,
)
from ._classifier import SUPPORTED_COMBINATIONS, SUPPORTED_KINDS, ClassificationResult, classify
from ._index import CatalogIndex
from ._resolver import Resolver, ResolveResult, UniverseResolution, UnmatchedItem
from ._advisor import BatchReport, FailureReport, RecoveryAdvisor, classify_error
from ._outcomes import BatchOutcome, SyncOutcome
from .facade import TimelineSynchronizer

__all__ = [
    "TimelineItem", "Universe", "LibraryEntry", "LibraryOps", "UniverseState",
    "TimelineError", "IndexBuildError", "InvalidStateError", "CollectionWriteError", "UniverseValidationError",
    "SUPPORTED_KINDS", "SUPPORTED_COMBINATIONS", "ClassificationResult", "classify",
    "CatalogIndex", "Resolver", "ResolveResult", "UniverseResolution", "UnmatchedItem",
    "RecoveryAdvisor", "FailureReport", "BatchReport", "classify_error",
    "SyncOutcome", "BatchOutcome", "TimelineSynchronizer",
]
