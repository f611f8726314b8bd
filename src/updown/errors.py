from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when a config (or a partial update) violates a bound."""

    def __init__(self, errors: list[str], fields: set[str] | None = None) -> None:
        self.errors = list(errors)
        self.fields = set(fields or ())
        super().__init__(f"Configuration validation failed: {', '.join(self.errors)}")


class MissingEnvironmentError(RuntimeError):
    """Required credential or endpoint missing at startup."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Environment validation failed: {', '.join(self.errors)}")


class OracleDegradation(RuntimeError):
    pass


class SizingRejection(RuntimeError):
    pass


class ExecutionFailure(RuntimeError):
    def __init__(self, message: str, tx_ref: str | None = None) -> None:
        self.tx_ref = tx_ref
        super().__init__(message)


class TransactionPending(ExecutionFailure):
    """Broadcast, but no receipt within the wait. The swap may still land."""


class ExternalCallTimeout(TimeoutError):
    pass
