# _logging.py
# TimelineManager logger. Console lines look like "[ts] [MODULE] LEVEL message";
# an optional JSON-lines file receives the same records with their tags.
from __future__ import annotations
import datetime, json, os, sys, threading, time
from typing import Any, Dict, Mapping, Optional, TextIO

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# label -> (threshold level, colour)
_LABELS = {
    "DEBUG": ("debug", YELLOW),
    "INFO": ("info", BLUE),
    "SUCCESS": ("info", GREEN),
    "WARN": ("warn", YELLOW),
    "ERROR": ("error", RED),
}

_TRUTHY = ("1", "true", "yes", "on")
_dbg_state: Dict[str, Any] = {"value": None, "checked": 0.0}


def _debug_enabled() -> bool:
    """TM_DEBUG forces debug output; otherwise runtime.debug from config.json, re-read every 5s."""
    if (os.environ.get("TM_DEBUG") or "").strip().lower() in _TRUTHY:
        return True
    now = time.time()
    if _dbg_state["value"] is not None and now - _dbg_state["checked"] <= 5.0:
        return bool(_dbg_state["value"])
    value = False
    try:
        from tm_platform.config_base import config_path
        raw = json.loads(config_path().read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            value = bool((raw.get("runtime") or {}).get("debug"))
    except (OSError, ValueError, AttributeError):
        value = False
    _dbg_state.update(value=value, checked=now)
    return value


class _Output:
    """Shared by a logger and all of its children."""

    def __init__(self, stream: TextIO, level: str, color: bool, show_time: bool):
        self.stream = stream
        self.level_no = LEVELS.get(level, 20)
        self.color = color
        self.show_time = show_time
        self.json: Optional[TextIO] = None
        self.lock = threading.Lock()


class Logger:
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        use_color: bool = True,
        show_time: bool = True,
        *,
        tags: Optional[Mapping[str, Any]] = None,
        _out: Optional[_Output] = None,
    ):
        self._out = _out or _Output(stream, level, use_color, show_time)
        self.tags: Dict[str, Any] = dict(tags or {})

    def set_level(self, level: str) -> None:
        self._out.level_no = LEVELS.get(level, self._out.level_no)

    def enable_json(self, file_path: str) -> None:
        """Also append every record to ``file_path`` as one JSON object per line."""
        with self._out.lock:
            if self._out.json is not None:
                self._out.json.close()
            self._out.json = open(file_path, "a", encoding="utf-8")

    def bind(self, **tags: Any) -> "Logger":
        return Logger(tags={**self.tags, **tags}, _out=self._out)

    def child(self, name: str) -> "Logger":
        return self.bind(module=name)

    def _line(self, label: str, msg: str) -> str:
        out = self._out
        mod = str(self.tags.get("module") or "")
        colour = _LABELS[label][1] if out.color else ""
        text = f"{colour}{label}{RESET if colour else ''} {msg}"
        if mod:
            text = f"[{mod}] {text}"
        if out.show_time:
            ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            text = f"{DIM}[{ts}]{RESET} {text}" if out.color else f"[{ts}] {text}"
        return text

    def _log(self, label: str, parts: tuple, extra: Optional[Mapping[str, Any]]) -> None:
        threshold = _LABELS[label][0]
        if threshold == "debug":
            if not _debug_enabled():
                return
        elif LEVELS[threshold] < self._out.level_no:
            return
        msg = " ".join(str(p) for p in parts)
        out = self._out
        with out.lock:
            out.stream.write(self._line(label, msg) + "\n")
            out.stream.flush()
            if out.json is not None:
                rec: Dict[str, Any] = {
                    "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds"),
                    "level": label,
                    "msg": msg,
                    "tags": self.tags,
                }
                if extra:
                    rec["extra"] = dict(extra)
                out.json.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")
                out.json.flush()

    def debug(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._log("DEBUG", parts, extra)

    def info(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._log("INFO", parts, extra)

    def success(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._log("SUCCESS", parts, extra)

    def warn(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._log("WARN", parts, extra)

    def error(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._log("ERROR", parts, extra)


# default instance
log = Logger()

__all__ = ["Logger", "log", "LEVELS", "RESET", "DIM", "RED", "GREEN", "YELLOW", "BLUE"]
