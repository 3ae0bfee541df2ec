"""Custom exceptions for the currency sync engine.

Domain-rule violations, storage failures and rate API failures all live
here to avoid circular imports between the rates, storage and store modules.
"""


class FxSyncError(Exception):
    """Base exception for all fxsync errors."""


class RateApiError(FxSyncError):
    """Raised by an HttpClient when a request fails or returns a bad body.

    Never escapes RateSource or HistoricalSeriesSource; both recover locally.
    """


class StorageError(FxSyncError):
    """Raised by a storage backend when a read or write cannot complete."""


class MinimumCurrenciesError(FxSyncError):
    """Raised when removing a currency would leave fewer than two tracked."""


class UnknownCurrencyError(FxSyncError):
    """Raised when an operation names a currency that is not tracked."""


class InvalidSettingsError(FxSyncError):
    """Raised when a settings update fails validation. Nothing is applied."""


class InvalidBackupError(FxSyncError):
    """Raised when an imported backup payload is malformed. Nothing is applied."""


class InvalidAmountError(FxSyncError):
    """Raised when an amount is not a finite number or cannot be rounded."""
