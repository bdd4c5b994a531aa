"""Size and capacity constants for the image feed.

These constants define cache budgets, buffer depths, and encoding
parameters used throughout the codebase.
"""

# =============================================================================
# Memory Cache
# =============================================================================

MEMORY_CACHE_MAX_MB = 64
"""Total decoded-bitmap budget for the in-process cache, in megabytes."""

MEMORY_CACHE_MAX_ITEMS = 80
"""Count ceiling for the in-process cache."""

BYTES_PER_PIXEL = 4
"""Cost estimate per decoded pixel (RGBA)."""

# =============================================================================
# Disk Cache
# =============================================================================

DISK_CACHE_MAX_MB = 250
"""Approximate on-disk budget for encoded image bytes, in megabytes."""

DISK_CACHE_DIR_NAME = "CatFinderImageCache"
"""Directory name used under the platform cache root."""

DISK_CACHE_FILE_SUFFIX = ".img"
"""Suffix for cache files. Irrelevant to correctness."""

# =============================================================================
# Lookahead Buffer
# =============================================================================

LOOKAHEAD_DEPTH = 11
"""Target buffer depth: 1 current + 10 ahead."""

FILL_MAX_ATTEMPTS = 40
"""Cap on discovery calls per fill, so a small remote pool cannot spin forever."""

# =============================================================================
# Image Processing
# =============================================================================

ENCODE_JPEG_QUALITY = 90
"""Quality for lossy re-encoding of photographic content."""

DEFAULT_SIZE_HINT = 1024
"""Default longest-edge size hint used by the prefetch sweep."""
