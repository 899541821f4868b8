"""FastAPI dependencies shared by the app and its routers."""

from __future__ import annotations

from fastapi import Request

from avmux.worker.merge import MergeProcessor


def get_merge_processor(request: Request) -> MergeProcessor:
    """Dependency to get the app's merge processor."""
    return request.app.state.processor
