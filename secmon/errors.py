"""Errors surfaced to dashboard callers.

Every error carries a fixed, user-safe message.  Store diagnostics travel
only as the chained ``__cause__`` and in the logs.
"""


class SecMonError(Exception):
    message = "Security operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class Unauthenticated(SecMonError):
    message = "Authentication required"


class Unauthorized(SecMonError):
    message = "Access denied. Only super administrators can access security data."


class StoreUnavailable(SecMonError):
    message = "Failed to fetch security data"


class LogUnavailable(StoreUnavailable):
    pass


class OperationFailed(SecMonError):
    message = "Security operation failed"


class InvalidTimeframe(SecMonError, ValueError):
    message = "Timeframe must be one of 1h, 24h, 7d"
