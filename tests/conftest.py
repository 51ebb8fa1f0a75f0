"""Shared fixtures: a local aiohttp server standing in for blocklist hosts."""
from __future__ import annotations

import contextlib
from typing import AsyncIterator, Awaitable, Callable

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

HITS = web.AppKey("hits", dict)


def text_handler(body: str, status: int = 200) -> Handler:
    """Handler returning a fixed plain-text body."""

    async def handler(request: web.Request) -> web.Response:
        hits = request.app[HITS]
        hits[request.path] = hits.get(request.path, 0) + 1
        return web.Response(text=body, status=status)

    return handler


@pytest.fixture
def serve():
    """Factory for `async with serve({"/path": handler}) as server:`."""

    @contextlib.asynccontextmanager
    async def _serve(routes: dict[str, Handler]) -> AsyncIterator[TestServer]:
        app = web.Application()
        app[HITS] = {}
        for path, handler in routes.items():
            app.router.add_get(path, handler)
        async with TestServer(app) as server:
            yield server

    return _serve
