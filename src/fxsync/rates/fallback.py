"""Static rate tables used when the remote endpoint cannot be reached.

These keep the converter usable offline. They are NOT current rates.
"""

from decimal import Decimal

from fxsync.currencies import CURRENCY_NAMES


def _table(raw: dict[str, str]) -> dict[str, Decimal]:
    return {code: Decimal(rate) for code, rate in raw.items()}


FALLBACK_RATES: dict[str, dict[str, Decimal]] = {
    "USD": _table(
        {
            "CNY": "7.2456",
            "EUR": "0.8829",
            "GBP": "0.7892",
            "JPY": "149.32",
            "AUD": "1.5234",
            "HKD": "7.8123",
            "TWD": "31.456",
            "KRW": "1342.56",
            "SGD": "1.3456",
            "CAD": "1.3678",
            "CHF": "0.8934",
            "SEK": "10.234",
            "NOK": "10.567",
            "DKK": "6.789",
            "NZD": "1.6234",
            "THB": "35.678",
            "MYR": "4.6789",
            "INR": "83.234",
            "RUB": "92.345",
        }
    ),
    "CNY": _table(
        {
            "USD": "0.1381",
            "EUR": "0.1219",
            "GBP": "0.1090",
            "JPY": "20.612",
            "AUD": "0.2103",
            "HKD": "1.0789",
            "TWD": "4.3456",
            "KRW": "185.34",
            "SGD": "0.1858",
            "CAD": "0.1888",
            "CHF": "0.1234",
            "SEK": "1.4123",
            "NOK": "1.4589",
            "DKK": "0.9367",
            "NZD": "0.2241",
            "THB": "4.9234",
            "MYR": "0.6456",
            "INR": "11.489",
            "RUB": "12.745",
        }
    ),
}

DEFAULT_FALLBACK_BASE = "USD"

# Anchor rates for synthetic historical series; unknown pairs synthesize around 1
MOCK_BASE_RATES: dict[str, dict[str, Decimal]] = {
    "USD": _table({"CNY": "7.2456", "EUR": "0.8829", "GBP": "0.7892", "JPY": "149.32"}),
    "CNY": _table({"USD": "0.1381", "EUR": "0.1219", "GBP": "0.1090", "JPY": "20.612"}),
    "EUR": _table({"USD": "1.1326", "CNY": "8.2034", "GBP": "0.8943", "JPY": "169.23"}),
    "GBP": _table({"USD": "1.2671", "CNY": "9.1823", "EUR": "1.1182", "JPY": "189.34"}),
    "JPY": _table({"USD": "0.0067", "CNY": "0.0485", "EUR": "0.0059", "GBP": "0.0053"}),
}

FALLBACK_CURRENCY_NAMES: dict[str, str] = dict(CURRENCY_NAMES)


def fallback_rates_for(base: str) -> dict[str, Decimal]:
    """Return a copy of the fallback table for `base`, defaulting to USD."""
    table = FALLBACK_RATES.get(base, FALLBACK_RATES[DEFAULT_FALLBACK_BASE])
    return dict(table)


def mock_base_rate(base: str, target: str) -> Decimal:
    """Return the synthetic anchor rate for a pair (1 if the pair is unknown)."""
    return MOCK_BASE_RATES.get(base, {}).get(target, Decimal("1"))
