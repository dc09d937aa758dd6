class AsyncSettledError(Exception):
    """Base exception for settlement ledger errors."""


class ConfigurationError(AsyncSettledError):
    """Operator or vendor configuration is missing or invalid."""


class ExchangeRateNotFoundError(ConfigurationError):
    """No usable exchange rate for an operator/vendor pair."""

    def __init__(self, op_code: str, vendor_code: str, message: str | None = None):
        super().__init__(
            message or f"No exchange rate configured for {op_code}/{vendor_code}"
        )
        self.op_code = op_code
        self.vendor_code = vendor_code


class StorageError(AsyncSettledError):
    """Document store read or write failed."""

    def __init__(self, message: str, operation: str | None = None, collection: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.collection = collection


class StakeNotFoundError(AsyncSettledError):
    """A stake record was required but does not exist."""

    def __init__(self, identity: dict):
        super().__init__(f"Stake record not found for {identity}")
        self.identity = identity
