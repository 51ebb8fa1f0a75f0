#!/usr/bin/env python3
"""
pipeline.py

Refresh pipeline: per-category aggregation and the all-categories pass.

Usage:
    python -m blocklists.pipeline --lists data/lists.json --outdir output

Pipeline stages (per category):
1. Download every source URL into output/tmp/ (bounded concurrency)
2. Extract hostnames from every scratch file, deleting each one after use
3. Deduplicate, sort and write output/<category>.txt

Failure policy:
- A URL that fails after all retries contributes nothing; the category goes on.
- A filesystem error fails the category. By default it also stops the
  refresh; with continue_on_error the other categories still run.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Mapping, Sequence

import aiohttp

from blocklists.compiler import CompileStats, compile_category
from blocklists.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LISTS_FILE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    load_categories,
)
from blocklists.downloader import download_to_temp, make_session
from blocklists.errors import CategoryError, ConfigError, RefreshError
from blocklists.logging_setup import setup_logging

logger = logging.getLogger(__name__)

TEMP_DIR_NAME = "tmp"


async def aggregate_category(
    session: aiohttp.ClientSession,
    category: str,
    urls: Sequence[str],
    output_dir: Path,
    concurrency: int = DEFAULT_CONCURRENCY,
    attempts: int = DEFAULT_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> CompileStats:
    """
    Download, merge and write one category.

    Args:
        session: Shared HTTP session
        category: Category name, used as the output file stem
        urls: Source URLs of the category
        output_dir: Directory holding <category>.txt and the scratch directory
        concurrency: Max fetches in flight
        attempts: Attempts per URL
        retry_delay: Seconds between attempts

    Returns:
        CompileStats for the category

    Raises:
        CategoryError: On any filesystem failure
    """
    output_dir = Path(output_dir)
    temp_dir = output_dir / TEMP_DIR_NAME
    final_path = output_dir / f"{category}.txt"
    stats = CompileStats(urls=len(urls))

    logger.info("Processing category: %s (%d URLs)", category, len(urls))
    start_time = time.monotonic()

    try:
        temp_dir.mkdir(parents=True, exist_ok=True)

        results = await download_to_temp(
            session,
            urls,
            temp_dir,
            category=category,
            concurrency=concurrency,
            attempts=attempts,
            retry_delay=retry_delay,
        )
        temp_files = [r.path for r in results if r.success and r.path is not None]
        stats.fetched = len(temp_files)
        stats.failed = len(results) - len(temp_files)

        await asyncio.to_thread(compile_category, temp_files, final_path, stats)
    except OSError as e:
        raise CategoryError(category, e) from e

    logger.info(
        "Category %s: %d/%d sources, %d lines, %d hostnames (%d duplicates) in %.1fs",
        category,
        stats.fetched,
        len(results),
        stats.lines_read,
        stats.hostnames,
        stats.duplicates,
        time.monotonic() - start_time,
    )
    return stats


async def refresh_all(
    session: aiohttp.ClientSession,
    categories: Mapping[str, Sequence[str]],
    output_dir: Path,
    concurrency: int = DEFAULT_CONCURRENCY,
    attempts: int = DEFAULT_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    continue_on_error: bool = False,
) -> dict[str, CompileStats]:
    """
    Aggregate every category, one after another.

    Raises:
        CategoryError: First category failure (default)
        RefreshError: All category failures (continue_on_error=True)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    all_stats: dict[str, CompileStats] = {}
    failures: list[CategoryError] = []

    for category, urls in categories.items():
        try:
            all_stats[category] = await aggregate_category(
                session,
                category,
                urls,
                output_dir,
                concurrency=concurrency,
                attempts=attempts,
                retry_delay=retry_delay,
            )
        except CategoryError as e:
            if not continue_on_error:
                raise
            logger.error("%s", e)
            failures.append(e)

    if failures:
        raise RefreshError(failures)
    return all_stats


def add_refresh_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by the one-shot CLI and the server."""
    parser.add_argument("--lists", default=DEFAULT_LISTS_FILE, help="JSON file of category -> URLs")
    parser.add_argument("--outdir", default=DEFAULT_OUTPUT_DIR, help="Output directory for merged lists")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_CONCURRENCY, help="Max concurrent downloads per category")
    parser.add_argument("--retries", type=int, default=DEFAULT_RETRIES, help="Attempts per URL")
    parser.add_argument("--retry-delay", type=float, default=DEFAULT_RETRY_DELAY, help="Seconds between attempts")
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT, help="Request timeout in seconds")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("--continue-on-error", action="store_true", help="Keep going when a category fails")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")


async def _refresh_main(args: argparse.Namespace, categories: Mapping[str, Sequence[str]]) -> dict[str, CompileStats]:
    async with make_session(args.timeout, args.user_agent) as session:
        return await refresh_all(
            session,
            categories,
            Path(args.outdir),
            concurrency=args.concurrency,
            attempts=args.retries,
            retry_delay=args.retry_delay,
            continue_on_error=args.continue_on_error,
        )


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Refresh every blocklist category once")
    add_refresh_arguments(parser)
    args = parser.parse_args()

    setup_logging(args.log_level)

    try:
        categories = load_categories(args.lists)
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    logger.info("Refreshing %d categories...", len(categories))
    start_time = time.monotonic()
    try:
        all_stats = asyncio.run(_refresh_main(args, categories))
    except (CategoryError, RefreshError) as e:
        logger.error("Refresh failed: %s", e)
        return 1

    total = sum(s.hostnames for s in all_stats.values())
    logger.info(
        "Refresh complete: %d categories, %d hostnames in %.1fs",
        len(all_stats),
        total,
        time.monotonic() - start_time,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
