"""
Exceptions raised by Compose-External-DNS.

Wrapping errors use ``raise ... from error`` so the original cause stays
available on ``__cause__``.
"""


class ComposeDnsError(Exception):
    """Base class for all errors raised by this package."""


class AlreadyInitializedError(ComposeDnsError):
    """A component was initialized twice."""


class NotInitializedError(ComposeDnsError):
    """A component was used before ``initialize()`` was called."""


class SchedulerStateError(ComposeDnsError):
    """A scheduler was started while started, or stopped while stopped."""


class SourceError(ComposeDnsError):
    """The container runtime could not be reached or queried."""


class ProviderError(ComposeDnsError):
    """The DNS provider rejected or failed a call."""


class NoZonesError(ComposeDnsError):
    """The DNS provider returned no zones to synchronise against."""


class UnreachableStateError(ComposeDnsError):
    """An entry reached a code path its type should never reach."""


class SynchronisationError(ComposeDnsError):
    """
    One or more write calls failed during a synchronisation cycle.

    Attributes:
        failures: Every exception raised by the failed write calls
    """

    def __init__(self, message: str, failures):
        super().__init__(message)
        self.failures = list(failures)
