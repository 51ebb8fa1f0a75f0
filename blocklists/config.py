"""
config.py - Defaults and category configuration loading.

The category file is a JSON object mapping a category name to its ordered
list of source URLs:

    {
        "full": ["https://example.org/hosts.txt", ...],
        "social": ["https://example.org/social.txt"]
    }

Category names become output file stems, so they are restricted to
letters, digits, "_" and "-".
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from types import MappingProxyType
from typing import Final, Mapping

from blocklists.errors import ConfigError


# Default configuration
DEFAULT_LISTS_FILE = "data/lists.json"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_INTERVAL = 60 * 60 * 24
DEFAULT_CONCURRENCY = 10
DEFAULT_RETRIES = 5
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_TIMEOUT = 120
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:141.0) Gecko/20100101 Firefox/141.0"
)

CATEGORY_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_-]+$")

CategorySet = Mapping[str, tuple[str, ...]]


def is_valid_category(name: str) -> bool:
    """Check that a category name is safe to use as a file stem."""
    return bool(CATEGORY_NAME_PATTERN.match(name))


def load_categories(path: str | Path) -> CategorySet:
    """
    Load the category -> URLs mapping from a JSON file.

    Args:
        path: Path to the JSON category file

    Returns:
        Read-only mapping of category name to a tuple of URLs, in file order

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    lists_path = Path(path)
    try:
        with open(lists_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Category file not found: {lists_path}") from None
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(f"Could not load {lists_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{lists_path}: expected a JSON object of category -> URL list")

    categories: dict[str, tuple[str, ...]] = {}
    for name, urls in data.items():
        if not is_valid_category(name):
            raise ConfigError(f"{lists_path}: invalid category name {name!r}")
        if not isinstance(urls, list):
            raise ConfigError(f"{lists_path}: category {name!r} must be a list of URLs")
        for url in urls:
            if not isinstance(url, str) or not url.strip():
                raise ConfigError(f"{lists_path}: category {name!r} has an invalid URL {url!r}")
        categories[name] = tuple(url.strip() for url in urls)

    return MappingProxyType(categories)
