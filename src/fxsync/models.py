"""Shared data models for the currency sync engine.

CRITICAL: All monetary values use Decimal. Never use float for amounts or rates.
Timestamps are integer Unix milliseconds throughout.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ALL_CURRENCIES = "ALL"  # ConversionRecord.to_currency for a fan-out edit

FALLBACK_SOURCE = "Fallback Data"
API_SOURCE = "Exchange Rate API"


class TimeRange(str, Enum):
    """Chart time range selector and its span in days."""

    ONE_DAY = "1D"
    ONE_WEEK = "7D"
    ONE_MONTH = "30D"
    ONE_QUARTER = "90D"
    ONE_YEAR = "1Y"

    @property
    def days(self) -> int:
        return _TIME_RANGE_DAYS[self]


_TIME_RANGE_DAYS = {
    TimeRange.ONE_DAY: 1,
    TimeRange.ONE_WEEK: 7,
    TimeRange.ONE_MONTH: 30,
    TimeRange.ONE_QUARTER: 90,
    TimeRange.ONE_YEAR: 365,
}


@dataclass
class Currency:
    """A tracked currency as shown in the converter list."""

    code: str
    name: str
    symbol: str
    is_active: bool = True
    is_favorite: bool = False


@dataclass(frozen=True)
class RateSnapshot:
    """Exchange rates relative to a base currency at one point in time.

    Replaced wholesale on every refresh, never mutated. The base currency
    is implicitly 1 and may be absent from `rates`.
    """

    base: str
    rates: dict[str, Decimal]
    timestamp_ms: int
    source: str

    @property
    def is_fallback(self) -> bool:
        return self.source == FALLBACK_SOURCE

    def rate_for(self, code: str) -> Decimal | None:
        """Return the rate of `code` against the base, 1 for the base itself."""
        if code == self.base:
            return Decimal("1")
        return self.rates.get(code)

    def copy(self) -> "RateSnapshot":
        """Return an equal snapshot with its own rates mapping."""
        return replace(self, rates=dict(self.rates))


@dataclass(frozen=True)
class ConversionRecord:
    """One completed conversion. Immutable once created."""

    id: int
    from_currency: str
    to_currency: str  # a currency code or ALL_CURRENCIES
    from_amount: Decimal
    to_amount: Decimal  # 0 when to_currency is ALL_CURRENCIES
    exchange_rate: Decimal
    timestamp_ms: int
    source: str


@dataclass(frozen=True)
class SeriesPoint:
    """A single day of a historical rate series."""

    date: str  # yyyy-mm-dd
    rate: Decimal
    timestamp_ms: int


@dataclass(frozen=True)
class StorageUsage:
    """Persisted bytes against the assumed storage capacity."""

    used: int
    total: int
    percentage: float


class UserSettings(BaseModel):
    """User preferences, persisted as one blob and merged on partial update."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    preferred_currencies: list[str] = Field(
        default_factory=lambda: ["CNY", "USD", "EUR", "GBP", "JPY", "HKD"]
    )
    default_base_currency: str = "USD"
    default_currency: str = "CNY"
    decimal_places: int = Field(default=2, ge=0, le=8)
    theme: Literal["light", "dark", "system"] = "system"
    auto_refresh: bool = True
    refresh_interval: int = Field(default=5, ge=1, le=60)  # minutes
    data_source: Literal["openexchange", "central_bank", "bis"] = "openexchange"
    notifications: bool = True
    language: Literal["zh", "en"] = "zh"


@dataclass
class StoreState:
    """Read-only view of everything the Store owns.

    Handed out by Store.state; the containers and the rate snapshot are
    copies, so callers mutating them do not affect the store.
    """

    currencies: list[Currency]
    active_currency: str | None
    exchange_rates: RateSnapshot | None
    amounts: dict[str, Decimal]
    history: tuple[ConversionRecord, ...]
    settings: UserSettings
    chart_data: dict[str, list[SeriesPoint]] = field(default_factory=dict)
    is_loading: bool = False
    error: str | None = None
