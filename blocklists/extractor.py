#!/usr/bin/env python3
"""
extractor.py - Hostname Extraction from Blocklist Lines

Turns one line of a blocklist into zero or one hostname. It is deliberately a
best-effort heuristic, not a full hosts-file or Adblock grammar.

Recognized shape (case-insensitive, every part except the hostname optional):

    [whitespace] [||] [0.0.0.0 | 127.0.0.1 <whitespace>] hostname [^]

    0.0.0.0 ads.example.com        →  ads.example.com
    127.0.0.1   tracker.example    →  tracker.example
    ||ads.example.com^$third-party →  ads.example.com
    ads.example.com                →  ads.example.com

Only the first hostname-shaped token is captured; anything after it on the
line (inline comments, extra hosts, Adblock modifiers) is ignored.

Not matched, and therefore dropped:
    - comments (# and !) and blank lines
    - @@ exception rules, wildcard rules (*.example.com), regex rules (/ads/)
    - IPv6 entries (::1 localhost)
    - single-label names (localhost) and bare IPv4 addresses
"""
from __future__ import annotations

import re
from typing import Final


# =============================================================================
# REGEX PATTERNS
# =============================================================================

#: The whole line grammar. The hostname needs at least two labels.
HOSTNAME_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*"
    r"(?:\|\|)?"                                  # Adblock prefix
    r"(?:(?:0\.0\.0\.0|127\.0\.0\.1)\s+)?"        # hosts-file IP prefix
    r"(?P<hostname>[a-z0-9-]+(?:\.[a-z0-9-]+)+)"  # labels separated by '.'
    r"\^?",                                       # Adblock separator
    re.IGNORECASE | re.ASCII,
)

#: A captured token that is really an address, e.g. "127.0.0.1 localhost"
#: backtracks to capture "127.0.0.1" itself.
IPV4_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\d{1,3}(?:\.\d{1,3}){3}$")


def extract_hostname(line: str) -> str | None:
    """
    Extract the hostname from a single blocklist line.

    Args:
        line: Raw line, with or without its trailing newline

    Returns:
        The hostname exactly as written in the line, or None

    Example:
        >>> extract_hostname("0.0.0.0 ads.example.com")
        'ads.example.com'
        >>> extract_hostname("||Tracker.Example.net^")
        'Tracker.Example.net'
        >>> extract_hostname("# comment") is None
        True
    """
    match = HOSTNAME_PATTERN.match(line)
    if not match:
        return None

    hostname = match.group("hostname")
    if IPV4_PATTERN.match(hostname):
        return None
    return hostname
