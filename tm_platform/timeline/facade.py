# tm_platform/timeline/facade.py
# Timeline synchronizer: classify -> resolve -> create/replace playlist, per universe, failures isolated.
from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from _logging import log as BASE_LOG

from ._advisor import RecoveryAdvisor
from ._classifier import classify, group_by_kind
from ._errors import CollectionWriteError, UniverseValidationError
from ._index import CatalogIndex
from ._logging import Emitter, notify_progress
from ._outcomes import ACTION_CREATED, ACTION_FAILED, ACTION_SKIPPED, ACTION_UPDATED, BatchOutcome, SyncOutcome
from ._resolver import Resolver
from ._types import LibraryOps, Universe, UniverseState

__all__ = ["TimelineSynchronizer"]

_log = BASE_LOG.child("TIMELINE")

CancelFlag = Any  # callable returning bool, or anything with is_set() such as threading.Event


def _cancel_requested(flag: CancelFlag | None) -> bool:
    if flag is None:
        return False
    is_set = getattr(flag, "is_set", None)
    if callable(is_set):
        return bool(is_set())
    return bool(flag())


@dataclass
class TimelineSynchronizer:
    library: LibraryOps
    on_progress: Callable[[str], None] | None = None
    on_item_progress: Callable[[int, int], None] | None = None
    dry_run: bool = False
    index_workers: int = 1
    advisor: RecoveryAdvisor = field(default_factory=RecoveryAdvisor)

    index: CatalogIndex = field(init=False)
    resolver: Resolver = field(init=False)
    emitter: Emitter = field(init=False)

    def __post_init__(self) -> None:
        self.index = CatalogIndex(self.library)
        self.resolver = Resolver(self.index)
        self.emitter = Emitter(self.on_progress)

    # --- index ----------------------------------------------------------------
    def ensure_index(self, *, rebuild: bool = False) -> CatalogIndex:
        """Build the index if needed; ``rebuild`` rescans the library in place."""
        if rebuild or not self.index.is_built:
            self.index.build(self.library, workers=self.index_workers)
            st = self.index.stats()
            self.emitter.emit("index:built", indexed=st["indexed"], scanned=st["scanned"], ms=st["build_ms"])
        return self.index

    # --- one universe -----------------------------------------------------------
    def synchronize(self, universe: Universe) -> SyncOutcome:
        """Synchronize one universe against a fresh scan of the library.

        Validation failures come back as a failed outcome. Library faults
        (scan or playlist write) are raised; ``synchronize_batch`` isolates them.
        """
        self.ensure_index(rebuild=True)
        out = self._new_outcome(universe)
        self._run(universe, out)
        return out

    def _new_outcome(self, universe: Universe) -> SyncOutcome:
        return SyncOutcome(
            universe_key=universe.key,
            universe_name=universe.name,
            declared=len(universe.items),
            dry_run=self.dry_run,
        )

    def _run(self, universe: Universe, out: SyncOutcome) -> None:
        name = (universe.name or "").strip()
        cls = classify(universe)
        out.classification = cls
        if not name:
            cls.valid = False
            cls.errors.append("universe has no display name")
        if not cls.valid:
            self._fail(out, UniverseValidationError(universe.key, cls.errors))
            return
        out.advance(UniverseState.CLASSIFIED)

        res = self.resolver.resolve_universe(universe)
        out.resolution = res
        out.by_kind = group_by_kind(res.matched_items, res.matched)
        out.advance(UniverseState.RESOLVED)

        existing = self.library.find_named_collection(name)
        if self.dry_run:
            out.action = ACTION_UPDATED if existing else ACTION_CREATED
            out.collection_id = existing
            out.item_count = len(res.matched)
            out.advance(UniverseState.SYNCHRONIZED)
            _log.info(f"[dry-run] would {'update' if existing else 'create'} '{name}' with {len(res.matched)} item(s)")
            return

        if existing:
            if self.library.replace_collection_membership(existing, list(res.matched)) is False:
                raise CollectionWriteError(f"replacing items of playlist '{name}' failed")
            out.action = ACTION_UPDATED
            out.collection_id = str(existing)
        else:
            cid = self.library.create_named_collection(name, list(res.matched))
            if not cid:
                raise CollectionWriteError(f"creating playlist '{name}' returned no id")
            out.action = ACTION_CREATED
            out.collection_id = str(cid)

        out.item_count = len(res.matched)
        out.advance(UniverseState.SYNCHRONIZED)
        _log.success(
            f"{out.action} playlist '{name}' ({out.collection_id}): {out.item_count}/{out.declared} item(s)"
            + (f", {len(res.unmatched)} missing" if res.unmatched else "")
        )

    def _fail(self, out: SyncOutcome, exc: BaseException) -> None:
        rep = self.advisor.assess(exc, universe_key=out.universe_key, universe_name=out.universe_name)
        out.failure = rep
        out.errors = list(rep.errors) or [str(exc)]
        out.action = ACTION_FAILED
        out.reason = rep.kind
        out.advance(UniverseState.FAILED)

    def _isolated(self, universe: Universe) -> SyncOutcome:
        out = self._new_outcome(universe)
        try:
            self._run(universe, out)
        except Exception as e:
            self._fail(out, e)
        return out

    # --- batch ------------------------------------------------------------------
    def synchronize_batch(
        self,
        universes: Iterable[Universe],
        *,
        should_cancel: CancelFlag | None = None,
    ) -> BatchOutcome:
        todo = list(universes or ())
        total = len(todo)
        batch = BatchOutcome(dry_run=self.dry_run)
        self.emitter.emit("timeline:start", universes=total, dry_run=self.dry_run)
        _log.info(f"synchronizing {total} universe(s){' (dry-run)' if self.dry_run else ''}")

        try:
            self.ensure_index(rebuild=True)
        except Exception as e:
            fatal = self.advisor.assess(e, universe_name="catalog index", fatal=True)
            batch.fatal = fatal
            for u in todo:
                out = self._new_outcome(u)
                out.failure = fatal
                out.errors = [f"catalog index unavailable: {fatal.detail}"]
                out.action = ACTION_FAILED
                out.reason = "index_unavailable"
                out.advance(UniverseState.FAILED)
                batch.outcomes.append(out)
            batch.report = self.advisor.summarize([fatal])
            return self._finish(batch)

        for i, u in enumerate(todo):
            if _cancel_requested(should_cancel):
                _log.info(f"cancelled after {i}/{total} universe(s)")
                batch.cancelled = True
                for rest in todo[i:]:
                    out = self._new_outcome(rest)
                    out.action = ACTION_SKIPPED
                    out.reason = "cancelled"
                    out.advance(UniverseState.SKIPPED)
                    batch.outcomes.append(out)
                break

            _log.info(f"processing universe '{u.name}' ({i + 1}/{total})")
            out = self._isolated(u)
            batch.outcomes.append(out)
            self.emitter.emit(
                "universe:done",
                universe=u.key,
                state=out.state.value,
                action=out.action,
                items=out.item_count,
                missing=len(out.unmatched),
            )
            notify_progress(self.on_item_progress, i + 1, total)

        reports = [o.failure for o in batch.outcomes if o.failure is not None]
        batch.report = self.advisor.summarize(reports, processed=batch.succeeded + batch.failed)
        batch.index_stats = self.index.stats()
        return self._finish(batch)

    def _finish(self, batch: BatchOutcome) -> BatchOutcome:
        batch.finished_at = time.time()
        line = (
            f"batch {batch.status}: {batch.succeeded} succeeded, {batch.failed} failed"
            + (f", {batch.skipped} skipped" if batch.skipped else "")
        )
        if batch.status == "failed":
            _log.error(line)
        elif batch.status == "partial":
            _log.warn(line)
        else:
            _log.success(line)
        self.emitter.emit(
            "timeline:done",
            status=batch.status,
            succeeded=batch.succeeded,
            failed=batch.failed,
            skipped=batch.skipped,
        )
        return batch
