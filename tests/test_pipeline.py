"""End-to-end tests for blocklists.pipeline against a local HTTP server."""

from __future__ import annotations

import asyncio

import pytest
from aiohttp import web

from blocklists.downloader import make_session, url_to_filename
from blocklists.errors import CategoryError, RefreshError
from blocklists.pipeline import aggregate_category, refresh_all

from conftest import HITS, text_handler

SOURCE_A = "0.0.0.0 ads.example.com\n||tracker.example.net^\n# comment\n\n"
SOURCE_B = "# second list\n127.0.0.1 ads.example.com\n"

ROUTES = {
    "/a.txt": text_handler(SOURCE_A),
    "/b.txt": text_handler(SOURCE_B),
    "/error": text_handler("server error", status=500),
    "/nested/list.txt": text_handler("one.example.com\n"),
    "/nested_list.txt": text_handler("two.example.com\n"),
}


def _aggregate(serve, output_dir, paths, category="full", concurrency=10):
    async def run():
        async with serve(ROUTES) as server:
            urls = [str(server.make_url(p)) for p in paths]
            async with make_session(timeout=5) as session:
                stats = await aggregate_category(
                    session, category, urls, output_dir,
                    concurrency=concurrency, attempts=2, retry_delay=0,
                )
            return stats, dict(server.app[HITS])

    return asyncio.run(run())


def _refresh(serve, output_dir, categories, continue_on_error=False):
    async def run():
        async with serve(ROUTES) as server:
            resolved = {
                name: [str(server.make_url(p)) for p in paths]
                for name, paths in categories.items()
            }
            async with make_session(timeout=5) as session:
                return await refresh_all(
                    session, resolved, output_dir,
                    attempts=1, retry_delay=0, continue_on_error=continue_on_error,
                )

    return asyncio.run(run())


# =============================================================================
# aggregate_category
# =============================================================================

def test_merges_sources_into_sorted_unique_hosts_file(serve, tmp_path):
    stats, _ = _aggregate(serve, tmp_path, ["/a.txt", "/b.txt"])

    assert (tmp_path / "full.txt").read_text(encoding="utf-8") == (
        "0.0.0.0 ads.example.com\n"
        "0.0.0.0 tracker.example.net\n"
    )
    assert stats.fetched == 2
    assert stats.failed == 0
    assert stats.hostnames == 2
    assert stats.duplicates == 1


def test_scratch_files_are_removed(serve, tmp_path):
    _aggregate(serve, tmp_path, ["/a.txt", "/b.txt", "/error"])

    assert (tmp_path / "tmp").is_dir()
    assert list((tmp_path / "tmp").iterdir()) == []
    assert sorted(p.name for p in tmp_path.iterdir()) == ["full.txt", "tmp"]


def test_failing_source_is_skipped(serve, tmp_path):
    stats, hits = _aggregate(serve, tmp_path, ["/error", "/b.txt"])

    assert (tmp_path / "full.txt").read_text(encoding="utf-8") == "0.0.0.0 ads.example.com\n"
    assert stats.fetched == 1
    assert stats.failed == 1
    assert hits["/error"] == 2


def test_unreachable_category_writes_empty_file(serve, tmp_path):
    stats, _ = _aggregate(serve, tmp_path, ["/error"], category="social")

    output = tmp_path / "social.txt"
    assert output.exists()
    assert output.read_bytes() == b""
    assert stats.hostnames == 0


def test_category_without_urls_writes_empty_file(serve, tmp_path):
    _aggregate(serve, tmp_path, [], category="msfw")

    assert (tmp_path / "msfw.txt").read_bytes() == b""


def test_aggregation_is_idempotent(serve, tmp_path):
    _aggregate(serve, tmp_path, ["/a.txt", "/b.txt"], concurrency=1)
    first = (tmp_path / "full.txt").read_bytes()
    _aggregate(serve, tmp_path, ["/b.txt", "/a.txt"], concurrency=2)

    assert (tmp_path / "full.txt").read_bytes() == first


def test_sources_with_similar_paths_both_contribute(serve, tmp_path):
    stats, _ = _aggregate(serve, tmp_path, ["/nested/list.txt", "/nested_list.txt"])

    assert (tmp_path / "full.txt").read_text(encoding="utf-8") == (
        "0.0.0.0 one.example.com\n"
        "0.0.0.0 two.example.com\n"
    )
    assert stats.fetched == 2
    assert stats.files_processed == 2


def test_failed_scratch_write_leaves_no_scratch_files(serve, tmp_path):
    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(0.1)
        return web.Response(text="slow.example.com\n")

    async def run():
        async with serve({"/a.txt": text_handler(SOURCE_A), "/slow": slow}) as server:
            fast_url = str(server.make_url("/a.txt"))
            slow_url = str(server.make_url("/slow"))
            # A directory where the slow source's scratch file goes makes its write fail
            blocker = tmp_path / "tmp" / url_to_filename(slow_url, "full")
            blocker.mkdir(parents=True)
            async with make_session(timeout=5) as session:
                with pytest.raises(CategoryError):
                    await aggregate_category(
                        session, "full", [fast_url, slow_url], tmp_path, attempts=1, retry_delay=0
                    )
            return blocker

    blocker = asyncio.run(run())

    assert list((tmp_path / "tmp").iterdir()) == [blocker]
    assert not (tmp_path / "full.txt").exists()


def test_filesystem_failure_raises_category_error(serve, tmp_path):
    not_a_dir = tmp_path / "output"
    not_a_dir.write_text("", encoding="utf-8")

    with pytest.raises(CategoryError) as excinfo:
        _aggregate(serve, not_a_dir, ["/a.txt"])

    assert excinfo.value.category == "full"
    assert isinstance(excinfo.value.__cause__, OSError)


# =============================================================================
# refresh_all
# =============================================================================

def _break_category(output_dir, category):
    """Make the final write of a category fail by putting a directory in its place."""
    target = output_dir / f"{category}.txt"
    target.mkdir(parents=True)
    (target / "blocker").write_text("", encoding="utf-8")


def test_refresh_writes_every_category(serve, tmp_path):
    all_stats = _refresh(serve, tmp_path, {
        "full": ["/a.txt", "/b.txt"],
        "social": ["/b.txt"],
        "msfw": ["/error"],
    })

    assert list(all_stats) == ["full", "social", "msfw"]
    assert (tmp_path / "social.txt").read_text(encoding="utf-8") == "0.0.0.0 ads.example.com\n"
    assert (tmp_path / "msfw.txt").read_bytes() == b""


def test_refresh_creates_output_dir_without_categories(serve, tmp_path):
    output_dir = tmp_path / "output"

    assert _refresh(serve, output_dir, {}) == {}
    assert output_dir.is_dir()


def test_refresh_stops_at_first_failed_category(serve, tmp_path):
    _break_category(tmp_path, "bad")

    with pytest.raises(CategoryError) as excinfo:
        _refresh(serve, tmp_path, {"bad": ["/a.txt"], "good": ["/b.txt"]})

    assert excinfo.value.category == "bad"
    assert not (tmp_path / "good.txt").exists()


def test_refresh_can_continue_past_failed_category(serve, tmp_path):
    _break_category(tmp_path, "bad")
    (tmp_path / "good.txt").write_text("0.0.0.0 stale.example.com\n", encoding="utf-8")

    with pytest.raises(RefreshError) as excinfo:
        _refresh(serve, tmp_path, {"bad": ["/a.txt"], "good": ["/b.txt"]}, continue_on_error=True)

    assert [f.category for f in excinfo.value.failures] == ["bad"]
    assert (tmp_path / "good.txt").read_text(encoding="utf-8") == "0.0.0.0 ads.example.com\n"
