"""
Background expiry sweeping.

Redis evicts keys on its own once their TTL passes. The SQL store has no
such mechanism, so a daemon thread deletes rows past their eviction
deadline instead.
"""

from .expiry_worker import start_expiry_worker, sweep_once

__all__ = ["start_expiry_worker", "sweep_once"]
