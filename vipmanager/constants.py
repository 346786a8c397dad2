"""
Constants used by the VIP manager.
"""

DEFAULT_WORKERS = 10
"""Maximum number of node updates in flight at once."""

DEFAULT_SLEEP_SECONDS = 10
"""Seconds to sleep after a cycle that changed nothing."""

DEFAULT_WAIT_SECONDS = 60
"""Seconds to wait for a node update to be reflected by the inventory."""

CONVERGENCE_INTERVALS = ((5, 1), (15, 2), (60, 5))
"""
(elapsed seconds below which, poll interval) pairs used while waiting for a
node update to be applied.
"""

CONVERGENCE_INTERVAL_MAX = 10
"""Poll interval once the elapsed time is past all thresholds."""
