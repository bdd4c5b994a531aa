"""Timing constants for the image feed.

All timing values are in seconds unless otherwise noted.
"""

# =============================================================================
# Network
# =============================================================================

FETCH_TIMEOUT_SECONDS = 30.0
"""Single-attempt timeout for image downloads."""

DISCOVERY_TIMEOUT_SECONDS = 15.0
"""Single-attempt timeout for discovery API calls."""

CONNECTIVITY_PROBE_TIMEOUT_SECONDS = 5.0
"""Timeout for the optional connectivity probe."""
