# tm_platform/timeline/_types.py
# Value types and the library protocol used by the timeline engine.
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from ..id_map import normalize_kind, normalize_source, provider_ref


@dataclass(frozen=True)
class TimelineItem:
    """One declared point in a universe's viewing order.

    Equality is the (provider, provider_id, kind) triple; season and title are
    carried for reporting only and never take part in matching.
    """
    provider_id: str
    provider: str
    kind: str
    season: int | None = field(default=None, compare=False)
    title: str | None = field(default=None, compare=False)
    declared_kind: str | None = field(default=None, compare=False)  # as written, before normalizing

    def __post_init__(self) -> None:
        if self.declared_kind is None:
            object.__setattr__(self, "declared_kind", str(self.kind or "").strip())
        object.__setattr__(self, "provider_id", str(self.provider_id or "").strip())
        object.__setattr__(self, "provider", normalize_source(self.provider))
        object.__setattr__(self, "kind", normalize_kind(self.kind))

    @property
    def ref(self) -> str:
        return provider_ref(self.provider, self.provider_id)

    @property
    def is_complete(self) -> bool:
        return bool(self.provider_id and self.provider and self.kind)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "providerId": self.provider_id,
            "providerName": self.provider,
            "type": self.kind,
        }
        if self.season is not None:
            out["season"] = self.season
        if self.title:
            out["title"] = self.title
        return out


@dataclass(frozen=True)
class Universe:
    key: str
    name: str
    items: Sequence[TimelineItem] = ()
    source_file: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items or ()))


@dataclass(frozen=True)
class LibraryEntry:
    """A library row as seen by the index: internal id, kind and its external ids."""
    internal_id: str
    kind: str
    ids: Mapping[str, str] = field(default_factory=dict)
    name: str | None = field(default=None, compare=False)


class UniverseState(Enum):
    PENDING = "pending"
    CLASSIFIED = "classified"
    RESOLVED = "resolved"
    SYNCHRONIZED = "synchronized"
    FAILED = "failed"
    SKIPPED = "skipped"


class LibraryOps(Protocol):
    def scan_all(self) -> Iterable[LibraryEntry]: ...
    def find_named_collection(self, name: str) -> str | None: ...
    def create_named_collection(self, name: str, ordered_ids: Sequence[str]) -> str | None: ...
    def replace_collection_membership(self, collection_id: str, ordered_ids: Sequence[str]) -> bool: ...
