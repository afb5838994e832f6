# tm_platform/timeline/_resolver.py
# Provider-id matching of timeline items against a built CatalogIndex.
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from _logging import log as BASE_LOG

from ._index import CatalogIndex
from ._types import TimelineItem, Universe

__all__ = ["ResolveResult", "UnmatchedItem", "UniverseResolution", "Resolver"]

_log = BASE_LOG.child("TIMELINE:resolve")

REASON_INCOMPLETE = "incomplete"
REASON_NOT_IN_LIBRARY = "not_in_library"


@dataclass(frozen=True)
class ResolveResult:
    item: TimelineItem
    internal_id: str | None = None
    reason: str | None = None

    @property
    def found(self) -> bool:
        return self.internal_id is not None


@dataclass(frozen=True)
class UnmatchedItem:
    index: int
    item: TimelineItem
    reason: str = REASON_NOT_IN_LIBRARY

    @property
    def ref(self) -> str:
        return self.item.ref

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "ref": self.ref, "reason": self.reason, "item": self.item.to_dict()}


@dataclass
class UniverseResolution:
    key: str
    name: str
    total: int = 0
    matched: list[str] = field(default_factory=list)
    matched_items: list[TimelineItem] = field(default_factory=list)
    unmatched: list[UnmatchedItem] = field(default_factory=list)

    @property
    def match_rate(self) -> float:
        return (len(self.matched) / self.total) if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "total": self.total,
            "matched": list(self.matched),
            "unmatched": [u.to_dict() for u in self.unmatched],
            "match_rate": round(self.match_rate, 4),
        }


class Resolver:
    """Matching is on (source, id, kind) only; names and seasons are never consulted."""

    def __init__(self, index: CatalogIndex):
        self.index = index

    def _incomplete(self, item: TimelineItem) -> bool:
        if item.is_complete:
            return False
        _log.warn(
            f"timeline item has missing fields: providerId='{item.provider_id}', "
            f"providerName='{item.provider}', type='{item.kind}'"
        )
        return True

    def resolve_one(self, item: TimelineItem) -> ResolveResult:
        if self._incomplete(item):
            return ResolveResult(item, None, REASON_INCOMPLETE)
        iid = self.index.lookup(item.provider_id, item.provider, item.kind)
        if iid is None:
            _log.debug(f"no library item for {item.ref} ({item.kind})")
            return ResolveResult(item, None, REASON_NOT_IN_LIBRARY)
        _log.debug(f"matched {item.ref} ({item.kind}) -> {iid}")
        return ResolveResult(item, iid)

    def resolve_many(self, items: Iterable[TimelineItem]) -> list[ResolveResult]:
        """Same results as resolve_one per item; each distinct triple is looked up once."""
        seq = list(items or ())
        seen: dict[TimelineItem, str | None] = {}
        out: list[ResolveResult] = []
        for it in seq:
            if self._incomplete(it):
                out.append(ResolveResult(it, None, REASON_INCOMPLETE))
                continue
            if it not in seen:
                seen[it] = self.index.lookup(it.provider_id, it.provider, it.kind)
            iid = seen[it]
            out.append(ResolveResult(it, iid, None if iid is not None else REASON_NOT_IN_LIBRARY))
        _log.debug(f"batch lookup: {len(seq)} item(s), {len(seen)} distinct, {sum(r.found for r in out)} found")
        return out

    def resolve_universe(self, universe: Universe) -> UniverseResolution:
        items: Sequence[TimelineItem] = universe.items
        res = UniverseResolution(key=universe.key, name=universe.name, total=len(items))
        if not items:
            _log.warn(f"universe '{universe.name}' has no timeline items to match")
            return res

        for i, r in enumerate(self.resolve_many(items)):
            if r.found:
                res.matched.append(r.internal_id)  # type: ignore[arg-type]
                res.matched_items.append(r.item)
            else:
                res.unmatched.append(UnmatchedItem(i, r.item, r.reason or REASON_NOT_IN_LIBRARY))

        _log.info(f"universe '{universe.name}': {len(res.matched)}/{res.total} matched ({res.match_rate:.1%})")
        if res.unmatched:
            _log.warn(
                f"universe '{universe.name}' has {len(res.unmatched)} missing item(s): "
                + ", ".join(u.ref for u in res.unmatched)
            )
        return res
