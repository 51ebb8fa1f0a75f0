#!/usr/bin/env python3
"""
downloader.py - Async Blocklist Downloader with Retry

Fetches blocklist sources concurrently into scratch files. A source that keeps
failing is logged and skipped: one bad URL never fails its whole category.

Usage:
    python -m blocklists.downloader --url https://example.org/hosts.txt --outdir tmp/
"""
from __future__ import annotations

import argparse
import asyncio
import hashlib
import logging
import sys
from pathlib import Path
from typing import NamedTuple, Sequence

import aiofiles
import aiohttp

from blocklists.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
)
from blocklists.errors import FetchError
from blocklists.logging_setup import setup_logging

logger = logging.getLogger(__name__)

# Longest scratch filename stem, digest included
MAX_FILENAME_LENGTH = 200

# Characters Windows refuses in file names (besides path separators)
_WINDOWS_RESERVED = ':*?"<>|'


class FetchResult(NamedTuple):
    """Result of downloading a single URL into a scratch file."""
    url: str
    success: bool
    path: Path | None = None
    error: str | None = None


def make_session(
    timeout: int = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
    headers: dict[str, str] | None = None,
) -> aiohttp.ClientSession:
    """Build the shared HTTP session. Must be called inside a running loop."""
    default_headers = {"Accept": "*/*", "User-Agent": user_agent}
    if headers:
        default_headers.update(headers)
    return aiohttp.ClientSession(
        headers=default_headers,
        timeout=aiohttp.ClientTimeout(total=timeout),
    )


def url_to_filename(url: str, category: str = "", windows: bool | None = None) -> str:
    """
    Generate a deterministic, path-safe scratch filename from a URL.

    Path separators become "_"; on Windows the reserved characters do too.
    A digest of the full URL is always appended, so URLs that sanitize to the
    same text ("./a/b" and "./a_b") still get distinct names. Long names are
    truncated before the digest.

    Example:
        "https://example.org/lists/ads.txt" in category "full" becomes
        "full_https:__example.org_lists_ads.txt_<16 hex digits>.tmp"
    """
    if windows is None:
        windows = sys.platform.startswith("win")

    name = url.replace("/", "_").replace("\\", "_")
    if windows:
        name = "".join("_" if c in _WINDOWS_RESERVED else c for c in name)
    if category:
        name = f"{category}_{name}"

    url_hash = hashlib.sha256(url.encode()).hexdigest()[:16]
    name = f"{name[:MAX_FILENAME_LENGTH - 17]}_{url_hash}"
    return f"{name}.tmp"


def remove_scratch_file(path: Path) -> None:
    """Delete a scratch file if present; failures are logged, not raised."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove scratch file %s: %s", path, e)


async def fetch_with_retry(
    session: aiohttp.ClientSession,
    url: str,
    attempts: int = DEFAULT_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> str:
    """
    Fetch a URL as text, retrying with a fixed delay.

    An attempt only succeeds when the status is not an error AND the body
    decodes as text.

    Raises:
        FetchError: After the last attempt failed
        ValueError: If attempts is lower than 1
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    reason = None
    for attempt in range(1, attempts + 1):
        try:
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                return await response.text()
        except asyncio.TimeoutError:
            reason = "Timeout"
        except aiohttp.ClientResponseError as e:
            reason = f"HTTP {e.status}"
        except (aiohttp.ClientError, UnicodeDecodeError, LookupError) as e:
            reason = str(e) or type(e).__name__

        logger.warning("Attempt %d/%d failed for %s: %s", attempt, attempts, url, reason)
        if attempt < attempts:
            await asyncio.sleep(retry_delay)

    raise FetchError(url, attempts, reason)


async def download_to_temp(
    session: aiohttp.ClientSession,
    urls: Sequence[str],
    temp_dir: Path,
    category: str = "",
    concurrency: int = DEFAULT_CONCURRENCY,
    attempts: int = DEFAULT_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> list[FetchResult]:
    """
    Download every URL into its own scratch file, at most `concurrency` at once.

    Fetch failures are reported as unsuccessful results. Filesystem errors
    while writing a scratch file cancel the remaining downloads and propagate.

    Returns:
        One FetchResult per distinct URL, in completion order
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    temp_dir.mkdir(parents=True, exist_ok=True)

    # The same URL twice would race on one scratch file
    unique_urls = list(dict.fromkeys(urls))
    if len(unique_urls) != len(urls):
        logger.info("Skipping %d duplicate URLs", len(urls) - len(unique_urls))

    semaphore = asyncio.Semaphore(concurrency)

    async def fetch_one(url: str) -> FetchResult:
        async with semaphore:
            try:
                content = await fetch_with_retry(session, url, attempts, retry_delay)
            except FetchError as e:
                logger.warning("%s", e)
                return FetchResult(url, success=False, error=e.reason)

        temp_path = temp_dir / url_to_filename(url, category)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(content)
        return FetchResult(url, success=True, path=temp_path)

    tasks = [asyncio.ensure_future(fetch_one(url)) for url in unique_urls]
    results: list[FetchResult] = []
    try:
        for next_done in asyncio.as_completed(tasks):
            results.append(await next_done)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        # Finished and half-written scratch files alike
        for url in unique_urls:
            remove_scratch_file(temp_dir / url_to_filename(url, category))
        raise

    return results


async def _download_main(args: argparse.Namespace) -> list[FetchResult]:
    async with make_session(args.timeout) as session:
        return await download_to_temp(
            session,
            args.url,
            Path(args.outdir),
            concurrency=args.concurrency,
            attempts=args.retries,
        )


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Download blocklist sources into scratch files")
    parser.add_argument("--url", action="append", required=True, help="Source URL (repeatable)")
    parser.add_argument("--outdir", required=True, help="Directory for downloaded files")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_CONCURRENCY, help="Max concurrent downloads")
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT, help="Request timeout in seconds")
    parser.add_argument("--retries", type=int, default=DEFAULT_RETRIES, help="Attempts per URL")

    args = parser.parse_args()
    setup_logging()

    results = asyncio.run(_download_main(args))

    success = sum(1 for r in results if r.success)
    logger.info("Fetched %d/%d sources", success, len(results))
    for r in results:
        if not r.success:
            logger.warning("   - %s: %s", r.url, r.error)

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
