# tm_platform/timeline/_classifier.py
# Content-kind validation and distribution for a universe's declared items.
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from _logging import log as BASE_LOG

from ..id_map import normalize_kind, normalize_source
from ._types import TimelineItem, Universe

__all__ = [
    "SUPPORTED_KINDS", "SUPPORTED_COMBINATIONS",
    "is_supported_combination",
    "ClassificationResult", "classify", "group_by_kind",
]

_log = BASE_LOG.child("TIMELINE:classify")

SUPPORTED_KINDS: frozenset[str] = frozenset({"movie", "episode"})

# (source, kind) pairs a timeline item may declare. Lookups consult this table too.
SUPPORTED_COMBINATIONS: frozenset[tuple[str, str]] = frozenset({
    ("tmdb", "movie"),
    ("tmdb", "episode"),
    ("imdb", "movie"),
    ("imdb", "episode"),
})


def is_supported_combination(
    source: Any,
    kind: Any,
    combinations: Iterable[tuple[str, str]] = SUPPORTED_COMBINATIONS,
) -> bool:
    return (normalize_source(source), normalize_kind(kind)) in combinations


@dataclass
class ClassificationResult:
    valid: bool = True
    total: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    kinds: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    percentages: dict[str, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    @property
    def is_mixed(self) -> bool:
        return len(self.counts) > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "total": self.total,
            "empty": self.is_empty,
            "mixed": self.is_mixed,
            "kinds": list(self.kinds),
            "counts": dict(self.counts),
            "percentages": {k: round(v, 2) for k, v in self.percentages.items()},
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def classify(
    items: Universe | Sequence[TimelineItem],
    *,
    kinds: Iterable[str] = SUPPORTED_KINDS,
    combinations: Iterable[tuple[str, str]] = SUPPORTED_COMBINATIONS,
) -> ClassificationResult:
    """Validate every item (no short-circuit) and summarize the kind mix.

    Incomplete items (missing id, source or kind) are warnings, not errors: the
    resolver reports them as unmatched.
    """
    label = items.name if isinstance(items, Universe) else None
    seq: Sequence[TimelineItem] = items.items if isinstance(items, Universe) else list(items or ())
    kinds = frozenset(kinds)
    combinations = frozenset(combinations)

    res = ClassificationResult(total=len(seq))
    for i, it in enumerate(seq, start=1):
        if it.kind:
            if it.kind not in res.counts:
                res.kinds.append(it.kind)
            res.counts[it.kind] = res.counts.get(it.kind, 0) + 1

        if not it.is_complete:
            missing = [n for n, v in (("providerId", it.provider_id), ("providerName", it.provider), ("type", it.kind)) if not v]
            res.warnings.append(f"item {i} ({it.ref}): missing {', '.join(missing)}; it will be reported as unmatched")
            continue

        if it.kind not in kinds:
            res.errors.append(f"item {i} ({it.ref}): unsupported content type '{it.declared_kind or it.kind}'")
            continue

        if (it.provider, it.kind) not in combinations:
            res.errors.append(
                f"item {i} ({it.ref}): provider '{it.provider}' is not compatible with content type '{it.kind}'"
            )

    if res.total:
        res.percentages = {k: c / res.total * 100.0 for k, c in res.counts.items()}
    res.valid = not res.errors

    name = f"'{label}'" if label else "items"
    if res.is_empty:
        _log.warn(f"{name}: no timeline items declared")
    elif not res.valid:
        _log.error(f"{name}: {len(res.errors)} validation error(s): " + "; ".join(res.errors))
    else:
        mix = ", ".join(f"{k}={res.counts[k]}" for k in res.kinds)
        _log.debug(f"{name}: {'mixed' if res.is_mixed else 'homogeneous'} content ({mix})")
    for w in res.warnings:
        _log.warn(f"{name}: {w}")
    return res


def group_by_kind(items: Sequence[TimelineItem], internal_ids: Sequence[str]) -> dict[str, list[str]]:
    """Split parallel matched sequences into movie / episode / other buckets, order kept."""
    out: dict[str, list[str]] = {"movie": [], "episode": [], "other": []}
    for it, iid in zip(items, internal_ids):
        out.get(it.kind, out["other"]).append(iid)
    return out
