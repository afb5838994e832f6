from __future__ import annotations

from fastapi import FastAPI

from .timelineAPI import (
    router as timeline_router,
    _is_timeline_running,
    _last_result,
)

__all__ = [
    "timeline_router",
    "_is_timeline_running",
    "_last_result",
    "register",
]

def register(app: FastAPI) -> None:
    app.include_router(timeline_router)
