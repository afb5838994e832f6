# tm_platform/timeline/_index.py
# Catalog index: (source, kind) partitioned maps from external id to library item id.
from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType
from typing import Any

from _logging import log as BASE_LOG

from ..id_map import INDEXED_SOURCES, normalize_id, normalize_kind, normalize_source
from ._classifier import is_supported_combination
from ._errors import IndexBuildError, InvalidStateError
from ._types import LibraryEntry, LibraryOps

__all__ = ["CatalogIndex"]

_log = BASE_LOG.child("TIMELINE:index")

PartitionKey = tuple[str, str]


def _index_source(entries: Sequence[LibraryEntry], source: str) -> tuple[dict[PartitionKey, dict[str, str]], int]:
    """Build every partition of one source. Workers never share partitions."""
    parts: dict[PartitionKey, dict[str, str]] = {}
    dupes = 0
    for e in entries:
        ext = normalize_id(source, (e.ids or {}).get(source))
        if not ext:
            continue
        kind = normalize_kind(e.kind)
        if not kind:
            continue
        m = parts.setdefault((source, kind), {})
        have = m.get(ext)
        if have is None:
            m[ext] = str(e.internal_id)
        elif have != str(e.internal_id):
            dupes += 1
            _log.debug(f"duplicate {source}:{ext} ({kind}) -> keeping {have}, ignoring {e.internal_id}")
    return parts, dupes


class CatalogIndex:
    """Built once per batch, then read-only.

    ``build()`` scans the library exactly once and publishes frozen mappings;
    ``lookup()`` is a dictionary probe and never touches the library.
    """

    def __init__(self, library: LibraryOps | None = None, *, sources: Iterable[str] = INDEXED_SOURCES):
        self._library = library
        self._sources: tuple[str, ...] = tuple(normalize_source(s) for s in sources)
        self._parts: Mapping[PartitionKey, Mapping[str, str]] = MappingProxyType({})
        self._built = False
        self._stats: dict[str, Any] = {}
        self._reset()

    def _reset(self) -> None:
        self._parts = MappingProxyType({})
        self._built = False
        self._stats = {
            "last_built": None,
            "scanned": 0,
            "indexed": 0,
            "skipped": 0,
            "duplicates": 0,
            "build_ms": 0,
            "partitions": {},
        }

    # --- build ----------------------------------------------------------------
    def build(self, library: LibraryOps | None = None, *, workers: int = 1) -> "CatalogIndex":
        lib = library if library is not None else self._library
        if lib is None:
            raise InvalidStateError("catalog index has no library to scan")
        self._library = lib
        self._reset()

        t0 = time.time()
        try:
            entries = [e for e in lib.scan_all() if e is not None]
        except Exception as e:
            _log.error(f"library scan failed: {e}")
            raise IndexBuildError(f"library scan failed: {e}") from e

        workers = max(1, int(workers or 1))
        parts: dict[PartitionKey, dict[str, str]] = {}
        dupes = 0
        if workers > 1 and len(self._sources) > 1:
            with ThreadPoolExecutor(max_workers=min(workers, len(self._sources))) as ex:
                futs = [ex.submit(_index_source, entries, src) for src in self._sources]
                # join every worker before anything is published
                results = [f.result() for f in futs]
        else:
            results = [_index_source(entries, src) for src in self._sources]
        for p, d in results:
            parts.update(p)
            dupes += d

        indexed = sum(
            1 for e in entries
            if normalize_kind(e.kind) and any(normalize_id(s, (e.ids or {}).get(s)) for s in self._sources)
        )

        self._parts = MappingProxyType({k: MappingProxyType(v) for k, v in parts.items()})
        self._built = True
        self._stats.update({
            "last_built": time.time(),
            "scanned": len(entries),
            "indexed": indexed,
            "skipped": len(entries) - indexed,
            "duplicates": dupes,
            "build_ms": int((time.time() - t0) * 1000),
            "partitions": {f"{s}:{k}": len(m) for (s, k), m in sorted(parts.items())},
        })
        _log.info(
            f"built index: {indexed}/{len(entries)} entries indexed, "
            + ", ".join(f"{k}={v}" for k, v in self._stats["partitions"].items())
            + (f", duplicates={dupes}" if dupes else "")
        )
        return self

    # --- read -----------------------------------------------------------------
    @property
    def is_built(self) -> bool:
        return self._built

    def lookup(self, provider_id: Any, source: Any, kind: Any) -> str | None:
        if not self._built:
            raise InvalidStateError("catalog index used before build()")
        src = normalize_source(source)
        knd = normalize_kind(kind)
        if not is_supported_combination(src, knd):
            _log.debug(f"unsupported combination {src}/{knd}; not found")
            return None
        ext = normalize_id(src, provider_id)
        if not ext:
            return None
        part = self._parts.get((src, knd))
        return part.get(ext) if part is not None else None

    def partition(self, source: str, kind: str) -> Mapping[str, str]:
        return self._parts.get((normalize_source(source), normalize_kind(kind))) or MappingProxyType({})

    def stats(self) -> dict[str, Any]:
        out = dict(self._stats)
        out["partitions"] = dict(self._stats.get("partitions") or {})
        out["built"] = self._built
        return out

    def __len__(self) -> int:
        return sum(len(m) for m in self._parts.values())
