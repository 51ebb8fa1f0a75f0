"""
blocklists package - Domain Blocklist Aggregator

Modules:
    downloader: Fetch blocklists with retry and bounded concurrency
    extractor: Extract hostnames from hosts-file and Adblock lines
    compiler: Deduplicate, sort and write per-category hosts files
    pipeline: Per-category and all-categories refresh
    scheduler: Serialized periodic refresh loop
    server: HTTP endpoint serving the merged files
    config: Defaults and category list loading
    errors: Exception hierarchy
    logging_setup: Logging configuration
"""

__version__ = "1.0.0"
