# SPDX-License-Identifier: MIT
"""Constants used throughout registry cache sync.

This module centralizes:

- **Endpoints**: default change feed and registry URLs
- **Cursor values**: first-run cursor and the live-tail sentinel
- **Pool sizing**: worker concurrency and submission buffer
- **Cache tuning**: the staleness setting overridden while the pipeline runs
- **Feed timing**: long-poll and inactivity bounds, reconnect backoff
"""

# Endpoints
DEFAULT_FEED_URL: str = "https://skimdb.npmjs.com/registry"
DEFAULT_REGISTRY_URL: str = "https://registry.npmjs.org"

# Cursor values
DEFAULT_INITIAL_SINCE: int = 594192
LIVE_TAIL: int = -1  # "start from now, ignore history"
CHECKPOINT_STATE_KEY: str = "since"

# Worker pool
DEFAULT_CONCURRENCY: int = 20
DEFAULT_QUEUE_BUFFER: int = 20

# Package manager cache tuning
DEFAULT_NPM_COMMAND: str = "npm"
CACHE_MIN_CONFIG_KEY: str = "cache-min"
CACHE_MIN_STATE_KEY: str = "cache-min"
DEFAULT_CACHE_MIN_OVERRIDE: int = 999999999

# Feed timing
DEFAULT_INACTIVITY_SECONDS: int = 60 * 60
DEFAULT_POLL_TIMEOUT_MS: int = 60 * 1000
FEED_RECONNECT_INITIAL_DELAY: float = 1.0
FEED_RECONNECT_MAX_DELAY: float = 60.0

# Registry requests
DEFAULT_REGISTRY_TIMEOUT: int = 30
DEFAULT_REGISTRY_MAX_RETRIES: int = 2

# Status command
DEFAULT_HISTORY_LIMIT: int = 20
