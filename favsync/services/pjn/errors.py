"""Exceptions raised by the PJN sync engine."""


class PjnSyncError(Exception):
    """Base class for sync engine errors."""


class SyncConfigurationError(PjnSyncError):
    """Required store settings are missing. Raised before any store is touched."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing configuration: {', '.join(self.missing)}")


class SyncInProgressError(PjnSyncError):
    """Another sync run holds the lock for this destination."""


class RuleTableError(PjnSyncError):
    """A classification rule table could not be loaded or compiled."""
