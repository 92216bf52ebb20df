"""Conversion between the base currency and the secondary display currency.

All stored amounts are in the base currency. ``rate`` is always the number
of secondary units per one base unit (``PalletConfig.exchangeRate``).
"""
import math
from typing import Optional

BASE = "base"
SECONDARY = "secondary"
CURRENCIES = (BASE, SECONDARY)

def finite(value, name: str = "amount") -> float:
    """Return ``value`` as a float, rejecting nan and infinities."""
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number")
    return value

def _check(rate: float, currency: str):
    if currency not in CURRENCIES:
        raise ValueError(f"Unknown currency: {currency!r} (expected 'base' or 'secondary')")
    if finite(rate, "Exchange rate") <= 0:
        raise ValueError("Exchange rate must be positive")

def is_base(currency: str) -> bool:
    return currency == BASE

def to_base(amount: float, rate: float, currency: str = BASE) -> float:
    """Convert an amount entered in ``currency`` into the base currency."""
    _check(rate, currency)
    amount = finite(amount)
    if is_base(currency):
        return amount
    return finite(amount / float(rate))

def to_display(amount: float, rate: float, currency: str = BASE) -> float:
    """Convert a base-currency amount into ``currency``."""
    _check(rate, currency)
    if is_base(currency):
        return float(amount)
    return float(amount) * float(rate)

def display_factor(rate: float, currency: str = BASE) -> float:
    _check(rate, currency)
    return 1.0 if is_base(currency) else float(rate)

def format_currency(amount: Optional[float], code: str) -> str:
    if amount is None:
        return "n/a"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f} {code}"
