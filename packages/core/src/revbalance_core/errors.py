"""Error kinds raised by the balancing engine.

NotFoundError is owned by the store package (a missing reviewer is a store
concern) and re-exported here so core modules import every error kind from
one place.
"""

from __future__ import annotations

from revbalance_store.errors import NotFoundError

__all__ = [
    "NotFoundError",
    "PaginationError",
    "RateLimitedError",
    "ResolutionError",
    "RevBalanceError",
    "TransportError",
]


class RevBalanceError(Exception):
    """Base class for errors raised by revbalance_core."""


class TransportError(RevBalanceError):
    """The host was unreachable, timed out, or answered with a non-2xx status other than 404."""


class RateLimitedError(TransportError):
    """The host refused the request because the API rate limit is exhausted."""


class ResolutionError(RevBalanceError):
    """An alias could not be mapped to a host identity."""


class PaginationError(RevBalanceError):
    """The host returned a continuation token that does not advance."""
