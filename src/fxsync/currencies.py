"""Built-in currency catalog: display names, symbols and the default tracked list."""

from fxsync.models import Currency

CURRENCY_NAMES: dict[str, str] = {
    "CNY": "Chinese Yuan",
    "USD": "US Dollar",
    "EUR": "Euro",
    "GBP": "British Pound",
    "JPY": "Japanese Yen",
    "AUD": "Australian Dollar",
    "HKD": "Hong Kong Dollar",
    "TWD": "Taiwan Dollar",
    "KRW": "South Korean Won",
    "SGD": "Singapore Dollar",
    "CAD": "Canadian Dollar",
    "CHF": "Swiss Franc",
    "SEK": "Swedish Krona",
    "NOK": "Norwegian Krone",
    "DKK": "Danish Krone",
    "NZD": "New Zealand Dollar",
    "THB": "Thai Baht",
    "MYR": "Malaysian Ringgit",
    "INR": "Indian Rupee",
    "RUB": "Russian Ruble",
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "CNY": "¥",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "AUD": "A$",
    "HKD": "HK$",
    "TWD": "NT$",
    "KRW": "₩",
    "SGD": "S$",
    "CAD": "C$",
    "CHF": "Fr",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "NZD": "NZ$",
    "THB": "฿",
    "MYR": "RM",
    "INR": "₹",
    "RUB": "₽",
}

DEFAULT_TRACKED: tuple[str, ...] = ("CNY", "USD", "EUR", "GBP", "JPY", "HKD")


def catalog_currency(code: str) -> Currency | None:
    """Build a fresh Currency for a catalog code, or None if unknown."""
    code = code.upper()
    if code not in CURRENCY_NAMES:
        return None
    return Currency(
        code=code,
        name=CURRENCY_NAMES[code],
        symbol=CURRENCY_SYMBOLS.get(code, code),
    )


def default_currencies() -> list[Currency]:
    """Return the tracked list a first run starts with."""
    return [c for c in map(catalog_currency, DEFAULT_TRACKED) if c is not None]
