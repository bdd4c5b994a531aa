"""Standard logging tags for consistent log filtering.

These tags prefix log messages so a single log file can be grepped by
subsystem.

Usage:
    from core.logging.tags import TAG_CACHE
    logger.debug("%s Memory hit: %s", TAG_CACHE, key)
"""

# =============================================================================
# Cache Tiers
# =============================================================================

TAG_CACHE = "[CACHE]"
"""Memory cache operations (get, put, evict)."""

TAG_DISK = "[DISK]"
"""Disk cache operations (load, store, evict, clear)."""

TAG_PIPELINE = "[PIPELINE]"
"""Cache pipeline orchestration and in-flight coalescing."""

# =============================================================================
# Network and Media
# =============================================================================

TAG_NET = "[NET]"
"""Remote fetches."""

TAG_IMAGE = "[IMAGE]"
"""Image decoding and re-encoding."""

TAG_DISCOVERY = "[DISCOVERY]"
"""Discovery API calls."""

TAG_OFFLINE = "[OFFLINE]"
"""Fast-fail because connectivity is down."""

# =============================================================================
# Scheduling
# =============================================================================

TAG_QUEUE = "[QUEUE]"
"""Lookahead buffer fills and advances."""

TAG_PREFETCH = "[PREFETCH]"
"""Prefetch sweeps."""

TAG_DECK = "[DECK]"
"""Deck controller decisions and lifecycle."""

TAG_STORE = "[STORE]"
"""Decision store persistence."""

# =============================================================================
# Status Tags
# =============================================================================

TAG_FALLBACK = "[FALLBACK]"
"""Fallback operations when primary path fails."""

__all__ = [
    "TAG_CACHE",
    "TAG_DISK",
    "TAG_PIPELINE",
    "TAG_NET",
    "TAG_IMAGE",
    "TAG_DISCOVERY",
    "TAG_OFFLINE",
    "TAG_QUEUE",
    "TAG_PREFETCH",
    "TAG_DECK",
    "TAG_STORE",
    "TAG_FALLBACK",
]
