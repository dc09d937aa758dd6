"""Vendor-to-operator currency normalization."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal, Mapping, Protocol

from .config import Settings
from .exceptions import ExchangeRateNotFoundError

DEFAULT_SCALE = 4


def _to_decimal(value: float | int | str | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def exchange_rate(
    amount: float | int | str | Decimal,
    rate: float | int | str | Decimal,
    operator: Literal["/", "*"] = "/",
    scale: int = DEFAULT_SCALE,
) -> float:
    """Convert ``amount`` by ``rate`` and round half-up to ``scale`` places.

    ``"/"`` turns a vendor amount into operator currency, ``"*"`` goes back.
    """
    amount_d = _to_decimal(amount)
    rate_d = _to_decimal(rate)
    if rate_d <= 0:
        raise ValueError(f"Exchange rate must be positive, got {rate}")

    if operator == "/":
        result = amount_d / rate_d
    elif operator == "*":
        result = amount_d * rate_d
    else:
        raise ValueError(f"Unsupported operator: {operator!r}")

    quantum = Decimal(1).scaleb(-scale)
    return float(result.quantize(quantum, rounding=ROUND_HALF_UP))


class RateProvider(Protocol):
    def get_rate(self, op_code: str, vendor_code: str) -> Decimal: ...


class SettingsRateProvider:
    """Rates keyed by operator then vendor, usually taken from Settings."""

    def __init__(self, rates: Mapping[str, Mapping[str, Decimal | float | str]]):
        self._rates = {
            op_code: {vendor: _to_decimal(rate) for vendor, rate in vendors.items()}
            for op_code, vendors in rates.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "SettingsRateProvider":
        return cls(settings.currency_rates)

    def get_rate(self, op_code: str, vendor_code: str) -> Decimal:
        rate = self._rates.get(op_code, {}).get(vendor_code)
        if rate is None:
            raise ExchangeRateNotFoundError(op_code, vendor_code)
        if rate <= 0:
            raise ExchangeRateNotFoundError(
                op_code,
                vendor_code,
                f"Exchange rate for {op_code}/{vendor_code} must be positive, got {rate}",
            )
        return rate
