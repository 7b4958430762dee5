"""Dependency helpers shared by API routers."""

from __future__ import annotations

from fastapi import Request

from tierhub.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime
