"""Domain exceptions raised by services and the event worker."""

from __future__ import annotations


class BerliozError(Exception):
    """Base class for all Berlioz errors."""


class PersistenceError(BerliozError):
    """A write was not acknowledged by the datastore."""


class MediaFetchError(BerliozError):
    """An attached file could not be downloaded."""


class GenerationError(BerliozError):
    """The generative model call failed."""


class AuthorizationError(BerliozError):
    """The Slack OAuth exchange could not be completed."""


class WorkerLockError(BerliozError):
    """Another event worker already holds the single-consumer lock."""
