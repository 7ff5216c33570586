"""Freshness policy for cached entries.

Pure functions over Unix timestamps. Clock skew that puts ``cached_at`` in
the future counts as fresh; it is never an error.
"""


def is_fresh(cached_at: float, now: float, ttl: float) -> bool:
    """Check whether an entry written at ``cached_at`` is still usable.

    Args:
        cached_at: Unix timestamp of the last write
        now: Current Unix timestamp
        ttl: Lifetime in seconds

    Returns:
        True iff less than ``ttl`` seconds have elapsed (or elapsed < 0)
    """
    elapsed = now - cached_at
    if elapsed < 0:
        return True
    return elapsed < ttl


def remaining_ttl(cached_at: float, now: float, ttl: float) -> float:
    """Seconds until the entry goes stale, clamped at 0."""
    return max(0.0, ttl - max(0.0, now - cached_at))
