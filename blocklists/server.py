#!/usr/bin/env python3
"""
server.py - Blocklist HTTP Service

Serves the merged lists and keeps them fresh in the background.

Endpoints:
    GET /files/{category}   contents of <outdir>/<category>.txt, or 404

Usage:
    python -m blocklists.server --lists data/lists.json --outdir output --port 3000
"""
from __future__ import annotations

import argparse
import asyncio
import contextlib
import functools
import logging
import sys
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiohttp
from aiohttp import web

from blocklists.config import (
    DEFAULT_HOST,
    DEFAULT_INTERVAL,
    DEFAULT_PORT,
    is_valid_category,
    load_categories,
)
from blocklists.downloader import make_session
from blocklists.errors import ConfigError
from blocklists.logging_setup import setup_logging
from blocklists.pipeline import add_refresh_arguments, refresh_all
from blocklists.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)

OUTPUT_DIR_KEY = web.AppKey("output_dir", Path)
SCHEDULER_KEY = web.AppKey("scheduler", RefreshScheduler)
SESSION_KEY = web.AppKey("session", aiohttp.ClientSession)
REFRESH_TASK_KEY = web.AppKey("refresh_task", asyncio.Task)

NOT_FOUND_TEXT = "File not found"


async def get_file(request: web.Request) -> web.Response:
    """Return a category's merged list, or 404 if it has not been written yet."""
    category = request.match_info["category"]
    if not is_valid_category(category):
        return web.Response(status=404, text=NOT_FOUND_TEXT)

    path = request.app[OUTPUT_DIR_KEY] / f"{category}.txt"
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
    except (FileNotFoundError, IsADirectoryError):
        return web.Response(status=404, text=NOT_FOUND_TEXT)

    return web.Response(text=content, content_type="text/plain")


def create_app(output_dir: str | Path) -> web.Application:
    """Build the web application serving files from output_dir."""
    app = web.Application()
    app[OUTPUT_DIR_KEY] = Path(output_dir)
    app.router.add_get("/files/{category}", get_file)
    return app


def _refresh_context(args: argparse.Namespace, categories):
    """Cleanup context owning the HTTP session and the scheduler task."""

    async def refresh_ctx(app: web.Application) -> AsyncIterator[None]:
        session = make_session(args.timeout, args.user_agent)
        refresh = functools.partial(
            refresh_all,
            session,
            categories,
            app[OUTPUT_DIR_KEY],
            concurrency=args.concurrency,
            attempts=args.retries,
            retry_delay=args.retry_delay,
            continue_on_error=args.continue_on_error,
        )
        scheduler = RefreshScheduler(refresh, interval=args.interval)
        task = asyncio.create_task(scheduler.run_forever())
        app[SESSION_KEY] = session
        app[SCHEDULER_KEY] = scheduler
        app[REFRESH_TASK_KEY] = task

        yield

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        await session.close()

    return refresh_ctx


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Serve merged blocklists and refresh them periodically")
    add_refresh_arguments(parser)
    parser.add_argument("--host", default=DEFAULT_HOST, help="Address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on")
    parser.add_argument("--interval", type=int, default=DEFAULT_INTERVAL, help="Seconds between refreshes")
    args = parser.parse_args()

    setup_logging(args.log_level)

    try:
        categories = load_categories(args.lists)
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    app = create_app(args.outdir)
    app.cleanup_ctx.append(_refresh_context(args, categories))

    logger.info("Serving %d categories on %s:%d", len(categories), args.host, args.port)
    web.run_app(app, host=args.host, port=args.port, print=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
