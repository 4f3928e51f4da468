"""
Timeout and polling constants for rolloutcore.

Centralizes polling caps so the stability monitor and configuration agree
on defaults.
"""

from __future__ import annotations

# =============================================================================
# Pod readiness polling
# =============================================================================

# Sleep between pod phase polls
POD_POLL_INTERVAL_S = 10

# 60 * 10 seconds = 10 minutes max
POD_POLL_ITERATIONS = 60

# =============================================================================
# Load balancer IP assignment polling
# =============================================================================

# Sleep between service status polls
SERVICE_POLL_INTERVAL_S = 10

# 18 * 10 seconds = 3 minutes max
SERVICE_POLL_ITERATIONS = 18

# =============================================================================
# Subprocess Timeouts
# =============================================================================

# Default timeout for kubectl commands; rollout status can block for a while
SUBPROCESS_DEFAULT_TIMEOUT_S = 300
