class FatalBootstrapError(Exception):
    """
    Failure that aborts a bootstrap run and is surfaced to the caller.
    """


class PersistenceError(FatalBootstrapError):
    """
    Raised by persistence gateways (schema, migration, seeding, inserts).
    """


class BootstrapInProgressError(FatalBootstrapError):
    """
    Raised when run() is invoked while another run is still executing.
    """


class RecoverableIntegrationError(Exception):
    """
    Bank or market call failure. Retried, then absorbed by a fallback.
    Never crosses the bootstrap boundary.
    """
    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class SyncError(Exception):
    """
    A single clock sync against the time authority failed.
    Clock state is left untouched.
    """
    def __init__(self, reason: str):
        super().__init__(f"Failed to sync simulation time: {reason}")
        self.reason = reason


class ValidationError(SyncError):
    """
    The time authority answered, but the payload or date was malformed.
    """
