#!/usr/bin/env python3
"""
compiler.py - Consolidation of Downloaded Blocklists into a Hosts File

Second half of a category refresh. Takes the scratch files left by the
downloader and produces one merged, sorted, deduplicated hosts file:

    scratch files  →  extract_hostname() per line  →  set  →  sorted  →  category.txt

OUTPUT FORMAT:
    One entry per line, "0.0.0.0 <hostname>\\n", sorted by code point. This is
    what DNS sinkhole tools expect from a hosts-format list.

DEDUPLICATION:
    Exact string match across ALL sources of the category. Case is kept as
    extracted, so "Example.com" and "example.com" are two entries.

ATOMIC REPLACEMENT:
    The new list is written next to the target as "<name>.tmp" and moved over
    it with os.replace(), so a reader sees either the previous list or the new
    one, never a partial file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from blocklists.extractor import extract_hostname

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

SINKHOLE_IP = "0.0.0.0"


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class CompileStats:
    """Statistics from one category refresh."""
    urls: int = 0
    fetched: int = 0
    failed: int = 0

    files_processed: int = 0
    lines_read: int = 0
    hostnames: int = 0
    duplicates: int = 0


# ============================================================================
# CONSOLIDATION
# ============================================================================

def consolidate_files(paths: Iterable[Path], stats: CompileStats | None = None) -> set[str]:
    """
    Extract hostnames from every scratch file into one set.

    Each file is deleted as soon as it has been read, whether or not it
    contained any hostname. A file that cannot be opened is logged and
    skipped; it is still removed.

    Args:
        paths: Scratch files to consume
        stats: Optional stats object updated in place

    Returns:
        Set of unique hostnames across all files
    """
    if stats is None:
        stats = CompileStats()

    hostnames: set[str] = set()
    extracted = 0

    for path in paths:
        try:
            with open(path, encoding="utf-8-sig", errors="replace") as f:
                for line in f:
                    stats.lines_read += 1
                    hostname = extract_hostname(line)
                    if hostname is not None:
                        extracted += 1
                        hostnames.add(hostname)
            stats.files_processed += 1
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
        finally:
            Path(path).unlink(missing_ok=True)

    stats.hostnames = len(hostnames)
    stats.duplicates = extracted - len(hostnames)
    return hostnames


def format_entry(hostname: str) -> str:
    """Format one hosts-file line, e.g. '0.0.0.0 ads.example.com'."""
    return f"{SINKHOLE_IP} {hostname}"


def write_hosts_file(hostnames: Iterable[str], output_path: Path) -> int:
    """
    Write hostnames sorted, one hosts entry per line, atomically.

    Creates the parent directory if needed. On failure the temporary file
    is removed and the previous output is left untouched.

    Returns:
        Number of entries written
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = output_path.with_name(output_path.name + ".tmp")

    entries = sorted(set(hostnames))
    try:
        with open(temp_path, "w", encoding="utf-8", newline="\n") as f:
            for hostname in entries:
                f.write(format_entry(hostname) + "\n")
        os.replace(temp_path, output_path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise

    return len(entries)


def compile_category(paths: Iterable[Path], output_path: Path, stats: CompileStats) -> int:
    """Consolidate scratch files and write the category output file."""
    hostnames = consolidate_files(paths, stats)
    return write_hosts_file(hostnames, output_path)
