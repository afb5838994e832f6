# tm_platform/timeline/_logging.py
# Event sink for timeline runs: compact JSON events to an optional callback.
from __future__ import annotations

import json
from typing import Any, Callable

from _logging import log as BASE_LOG

# Sink failures are logged at debug and never raised.


class Emitter:
    def __init__(self, cb: Callable[[str], None] | None):
        self.cb = cb

    def emit(self, event: str, **data: Any) -> None:
        if not self.cb:
            return
        payload: dict[str, Any] = {"event": event}
        payload.update(data)
        try:
            self.cb(json.dumps(payload, separators=(",", ":"), default=str))
        except Exception as e:
            BASE_LOG.child("TIMELINE").debug(f"progress sink failed on {event}: {e}")


def notify_progress(cb: Callable[[int, int], None] | None, processed: int, total: int) -> None:
    if not cb:
        return
    try:
        cb(processed, total)
    except Exception as e:
        BASE_LOG.child("TIMELINE").debug(f"progress callback failed at {processed}/{total}: {e}")
