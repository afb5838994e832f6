# tm_platform/timeline/_advisor.py
# Failure classification and recovery advice for timeline runs. Advice only: nothing here retries.
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import requests

from _logging import log as BASE_LOG

from ._errors import CollectionWriteError, InvalidStateError, TimelineError, UniverseValidationError

__all__ = [
    "INVALID_INPUT", "PERMISSION_DENIED", "TIMEOUT", "ITEM_NOT_FOUND",
    "INVALID_STATE", "UNSUPPORTED_OPERATION", "UNKNOWN",
    "SEVERITY_ORDER", "FailureReport", "BatchReport", "RecoveryAdvisor",
    "classify_error", "max_severity",
]

_log = BASE_LOG.child("TIMELINE:advisor")

# failure kinds
INVALID_INPUT = "invalid_input"
PERMISSION_DENIED = "permission_denied"
TIMEOUT = "timeout"
ITEM_NOT_FOUND = "item_not_found"
INVALID_STATE = "invalid_state"
UNSUPPORTED_OPERATION = "unsupported_operation"
UNKNOWN = "unknown"

# recovery strategies
RETRY_WITH_DELAY = "retry_with_delay"
SKIP_INVALID_ITEMS = "skip_invalid_items"
CREATE_EMPTY_FALLBACK = "create_empty_fallback"
NO_RECOVERY = "no_recovery"

SEVERITY_ORDER: tuple[str, ...] = ("none", "low", "medium", "high", "critical")

_SEVERITY = {
    INVALID_INPUT: "medium",
    PERMISSION_DENIED: "high",
    TIMEOUT: "medium",
    ITEM_NOT_FOUND: "low",
    INVALID_STATE: "high",
    UNSUPPORTED_OPERATION: "medium",
    UNKNOWN: "high",
}

_STRATEGY = {
    TIMEOUT: RETRY_WITH_DELAY,
    INVALID_STATE: RETRY_WITH_DELAY,
    INVALID_INPUT: SKIP_INVALID_ITEMS,
    ITEM_NOT_FOUND: SKIP_INVALID_ITEMS,
    PERMISSION_DENIED: NO_RECOVERY,
    UNSUPPORTED_OPERATION: NO_RECOVERY,
    UNKNOWN: CREATE_EMPTY_FALLBACK,
}

_HTTP_KIND = {
    400: INVALID_INPUT, 422: INVALID_INPUT,
    401: PERMISSION_DENIED, 403: PERMISSION_DENIED,
    404: ITEM_NOT_FOUND,
    405: UNSUPPORTED_OPERATION, 501: UNSUPPORTED_OPERATION,
    408: TIMEOUT, 504: TIMEOUT,
    409: INVALID_STATE,
}

_MESSAGES = {
    INVALID_INPUT: "Invalid data provided for '{name}'. Please check the universe configuration.",
    PERMISSION_DENIED: "Permission denied while writing playlist '{name}'. Check the user's access rights.",
    TIMEOUT: "Timed out while synchronizing '{name}'. The library took too long to respond.",
    ITEM_NOT_FOUND: "Something required by '{name}' was not found in the library.",
    INVALID_STATE: "The library is in an invalid state for synchronizing '{name}'.",
    UNSUPPORTED_OPERATION: "The requested operation for '{name}' is not supported by the library.",
    UNKNOWN: "An unexpected error occurred while synchronizing '{name}'.",
}

_RECOMMENDATIONS = {
    PERMISSION_DENIED: "{n} universe(s) failed due to permission errors; check access rights for the playlist owner",
    TIMEOUT: "{n} universe(s) timed out; retry later or lower jellyfin.page_size / write_chunk_size",
    INVALID_INPUT: "{n} universe(s) failed validation; fix unsupported kinds or provider combinations in their config",
    ITEM_NOT_FOUND: "{n} universe(s) referenced something missing from the library; verify library content",
    INVALID_STATE: "{n} universe(s) hit an invalid library state; retry once the library is idle",
    UNSUPPORTED_OPERATION: "{n} universe(s) needed an operation the library does not support",
    UNKNOWN: "{n} universe(s) failed with unexpected errors; see the log for details",
}


def _status_of(exc: BaseException) -> int | None:
    if isinstance(exc, CollectionWriteError) and exc.status:
        return int(exc.status)
    resp = getattr(exc, "response", None)
    code = getattr(resp, "status_code", None)
    try:
        return int(code) if code else None
    except (TypeError, ValueError):
        return None


def classify_error(exc: BaseException) -> str:
    if isinstance(exc, UniverseValidationError):
        return INVALID_INPUT
    if isinstance(exc, InvalidStateError):
        return INVALID_STATE
    status = _status_of(exc)
    if status in _HTTP_KIND:
        return _HTTP_KIND[status]
    if isinstance(exc, (requests.Timeout, TimeoutError)):
        return TIMEOUT
    if isinstance(exc, PermissionError):
        return PERMISSION_DENIED
    if isinstance(exc, NotImplementedError):
        return UNSUPPORTED_OPERATION
    if isinstance(exc, LookupError):
        return ITEM_NOT_FOUND
    if isinstance(exc, (ValueError, TypeError)):
        return INVALID_INPUT
    if isinstance(exc, TimelineError) and exc.__cause__ is not None:
        return classify_error(exc.__cause__)
    return UNKNOWN


def max_severity(levels: Sequence[str]) -> str:
    best = 0
    for s in levels:
        best = max(best, SEVERITY_ORDER.index(s) if s in SEVERITY_ORDER else 0)
    return SEVERITY_ORDER[best]


@dataclass
class FailureReport:
    universe_key: str
    universe_name: str
    kind: str
    severity: str
    strategy: str
    message: str
    detail: str = ""
    error_type: str = ""
    fatal: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def should_continue(self) -> bool:
        return self.severity != "critical"

    def to_dict(self) -> dict[str, Any]:
        return {
            "universe": self.universe_key,
            "name": self.universe_name,
            "kind": self.kind,
            "severity": self.severity,
            "strategy": self.strategy,
            "message": self.message,
            "detail": self.detail,
            "error_type": self.error_type,
            "fatal": self.fatal,
            "errors": list(self.errors),
            "should_continue": self.should_continue,
        }


@dataclass
class BatchReport:
    total_errors: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)
    overall_severity: str = "none"
    critical: int = 0
    recoverable: int = 0
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_errors": self.total_errors,
            "by_kind": dict(self.by_kind),
            "overall_severity": self.overall_severity,
            "critical": self.critical,
            "recoverable": self.recoverable,
            "recommendations": list(self.recommendations),
        }


class RecoveryAdvisor:
    def assess(
        self,
        exc: BaseException,
        *,
        universe_key: str = "",
        universe_name: str = "",
        fatal: bool = False,
    ) -> FailureReport:
        kind = classify_error(exc)
        severity = "critical" if fatal else _SEVERITY.get(kind, "high")
        rep = FailureReport(
            universe_key=universe_key,
            universe_name=universe_name,
            kind=kind,
            severity=severity,
            strategy=_STRATEGY.get(kind, NO_RECOVERY),
            message=_MESSAGES[kind].format(name=universe_name or universe_key or "batch"),
            detail=str(exc),
            error_type=type(exc).__name__,
            fatal=fatal,
            errors=list(getattr(exc, "errors", None) or []),
        )
        line = f"'{rep.universe_name or rep.universe_key}' failed: {kind} ({severity}) - {rep.detail}"
        if severity in ("critical", "high"):
            _log.error(line)
        elif severity == "medium":
            _log.warn(line)
        else:
            _log.info(line)
        return rep

    def summarize(self, reports: Sequence[FailureReport], *, processed: int = 0) -> BatchReport:
        out = BatchReport(total_errors=len(reports))
        if not reports:
            _log.debug("no failures to summarize")
            return out

        for r in reports:
            out.by_kind[r.kind] = out.by_kind.get(r.kind, 0) + 1
        out.overall_severity = max_severity([r.severity for r in reports])
        out.critical = sum(1 for r in reports if r.severity == "critical")
        out.recoverable = out.total_errors - out.critical

        if any(r.fatal for r in reports):
            out.recommendations.append("The library scan failed; no universe could be synchronized. Check server reachability and credentials")
        for kind, tmpl in _RECOMMENDATIONS.items():
            n = out.by_kind.get(kind, 0)
            if n and not all(r.fatal for r in reports if r.kind == kind):
                out.recommendations.append(tmpl.format(n=n))
        failed = len({r.universe_key for r in reports if not r.fatal})
        if processed and failed > processed * 0.5:
            out.recommendations.append("High failure rate detected; review configuration and library status")

        _log.warn(
            f"{out.total_errors} failure(s), overall severity {out.overall_severity}; "
            f"critical={out.critical} recoverable={out.recoverable}"
        )
        for rec in out.recommendations:
            _log.info(f"recommendation: {rec}")
        return out
