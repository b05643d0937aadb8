"""
Backing Store Exceptions

Errors raised while querying the relational backing store. Transient errors
are retried by the domain adapters; everything else surfaces to the caller.
"""

from telehealth_cache.core.exceptions.base import TelehealthCacheError


class BackendError(TelehealthCacheError):
    """A backing-store query failed for a non-transient reason."""
    pass


class BackendTransientError(BackendError):
    """
    A backing-store query failed for a network-level reason.

    Common causes:
    - Connection reset or refused
    - Read timeout
    - Gateway errors (502/503/504)
    """
    pass


class BackendNotConfiguredError(BackendError):
    """The backing store URL or key is missing."""
    pass
