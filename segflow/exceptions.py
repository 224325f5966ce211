"""Error types raised by segflow.

Both kinds abort the current solve. Nothing in the package retries or recovers
from them.
"""


class SegflowError(Exception):
    """Base class for all segflow errors."""


class ConfigurationError(SegflowError, ValueError):
    """The case is set up inconsistently; raised before any solve starts.

    Examples are a missing coupled field, a pressure field of the wrong kind,
    a boundary with no recognized condition, or mixed fully-developed and
    developing flow conditions on the same boundary.
    """


class InternalInvariantViolation(SegflowError, RuntimeError):
    """A numerical invariant that correct code never breaks has been broken.

    Examples are a zero momentum coefficient used as a divisor, a cache lookup
    on a thread bucket that was never created, or a face record that does not
    reference the element it is being evaluated for.
    """
