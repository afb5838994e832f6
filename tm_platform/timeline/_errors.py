# tm_platform/timeline/_errors.py
from __future__ import annotations

from collections.abc import Sequence


class TimelineError(RuntimeError): ...


class IndexBuildError(TimelineError):
    """The library scan failed; no universe in the batch can be resolved."""


class InvalidStateError(TimelineError): ...


class CollectionWriteError(TimelineError):
    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


class UniverseValidationError(TimelineError, ValueError):
    def __init__(self, universe: str, errors: Sequence[str]):
        self.universe = universe
        self.errors = list(errors)
        super().__init__(f"universe '{universe}' failed validation: " + "; ".join(self.errors))
