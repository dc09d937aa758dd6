"""async-settled: idempotent settlement ledger for vendor wagering callbacks."""

__version__ = "0.1.0"
__author__ = "async-settled Team"

from .correction import CorrectionTrigger
from .exceptions import (
    AsyncSettledError,
    ConfigurationError,
    ExchangeRateNotFoundError,
    StakeNotFoundError,
    StorageError,
)
from .ledger import LedgerWriter, create_ledger_writer
from .models import CorrectionTask, Member, SettlementRecord, SettlementStatus

__all__ = [
    "__version__",
    "__author__",
    "LedgerWriter",
    "create_ledger_writer",
    "CorrectionTrigger",
    "AsyncSettledError",
    "ConfigurationError",
    "ExchangeRateNotFoundError",
    "StakeNotFoundError",
    "StorageError",
    "CorrectionTask",
    "Member",
    "SettlementRecord",
    "SettlementStatus",
]
