# tm_platform/timeline/_outcomes.py
# Per-universe and per-batch run records. Created fresh on every run.
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from ._advisor import BatchReport, FailureReport
from ._classifier import ClassificationResult
from ._errors import InvalidStateError
from ._resolver import UniverseResolution
from ._types import UniverseState

__all__ = ["SyncOutcome", "BatchOutcome"]

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_SKIPPED = "skipped"
ACTION_FAILED = "failed"

_NEXT: dict[UniverseState, tuple[UniverseState, ...]] = {
    UniverseState.PENDING: (UniverseState.CLASSIFIED, UniverseState.FAILED, UniverseState.SKIPPED),
    UniverseState.CLASSIFIED: (UniverseState.RESOLVED, UniverseState.FAILED),
    UniverseState.RESOLVED: (UniverseState.SYNCHRONIZED, UniverseState.FAILED),
    UniverseState.SYNCHRONIZED: (),
    UniverseState.FAILED: (),
    UniverseState.SKIPPED: (),
}


@dataclass
class SyncOutcome:
    universe_key: str
    universe_name: str
    state: UniverseState = UniverseState.PENDING
    trail: list[str] = field(default_factory=lambda: [UniverseState.PENDING.value])
    action: str = ACTION_SKIPPED
    collection_id: str | None = None
    item_count: int = 0
    declared: int = 0
    dry_run: bool = False
    reason: str | None = None
    classification: ClassificationResult | None = None
    resolution: UniverseResolution | None = None
    by_kind: dict[str, list[str]] = field(default_factory=dict)  # matched ids per kind, order kept
    failure: FailureReport | None = None
    errors: list[str] = field(default_factory=list)

    def advance(self, state: UniverseState) -> None:
        if state not in _NEXT[self.state]:
            raise InvalidStateError(
                f"universe '{self.universe_key}' cannot move from {self.state.value} to {state.value}"
            )
        self.state = state
        self.trail.append(state.value)

    @property
    def ok(self) -> bool:
        return self.state is UniverseState.SYNCHRONIZED

    @property
    def unmatched(self) -> list[str]:
        return [u.ref for u in self.resolution.unmatched] if self.resolution else []

    @property
    def match_rate(self) -> float:
        return self.resolution.match_rate if self.resolution else 0.0

    def to_dict(self) -> dict[str, Any]:
        res = self.resolution
        return {
            "universe": self.universe_key,
            "name": self.universe_name,
            "state": self.state.value,
            "trail": list(self.trail),
            "ok": self.ok,
            "action": self.action,
            "collection_id": self.collection_id,
            "item_count": self.item_count,
            "declared": self.declared,
            "matched": len(res.matched) if res else 0,
            "missing": len(res.unmatched) if res else 0,
            "missing_items": self.unmatched,
            "by_kind": {k: list(v) for k, v in self.by_kind.items()},
            "match_rate": round(self.match_rate, 4),
            "dry_run": self.dry_run,
            "reason": self.reason,
            "classification": self.classification.to_dict() if self.classification else None,
            "failure": self.failure.to_dict() if self.failure else None,
            "errors": list(self.errors),
        }


@dataclass
class BatchOutcome:
    outcomes: list[SyncOutcome] = field(default_factory=list)
    report: BatchReport = field(default_factory=BatchReport)
    fatal: FailureReport | None = None
    cancelled: bool = False
    dry_run: bool = False
    index_stats: dict[str, Any] = field(default_factory=dict)
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.state is UniverseState.SYNCHRONIZED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.state is UniverseState.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.state is UniverseState.SKIPPED)

    @property
    def status(self) -> str:
        if self.fatal is not None:
            return "failed"
        attempted = self.succeeded + self.failed
        if self.failed and self.failed == attempted:
            return "failed"
        if self.failed or self.cancelled:
            return "partial"
        return "success"

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def get(self, key: str) -> SyncOutcome | None:
        for o in self.outcomes:
            if o.universe_key == key:
                return o
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.status,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "total": len(self.outcomes),
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "fatal": self.fatal.to_dict() if self.fatal else None,
            "report": self.report.to_dict(),
            "index": dict(self.index_stats),
            "universes": [o.to_dict() for o in self.outcomes],
        }
