"""Shared test fixtures for the currency sync engine."""

from decimal import Decimal

import pytest

from fxsync.config import AppSettings, CacheSettings, RateApiSettings, StorageSettings
from fxsync.models import API_SOURCE, RateSnapshot
from fxsync.storage.backend import MemoryStorage
from fxsync.storage.persistence import PersistenceService

# 2024-03-15 12:00:00 UTC
BASE_TIME = 1_710_504_000.0


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, start: float = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (in-memory storage, local API)."""
    return AppSettings(
        log_level="DEBUG",
        rates=RateApiSettings(base_url="https://rates.test/v4", timeout_seconds=1.0),
        cache=CacheSettings(),
        storage=StorageSettings(backend="memory"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def persistence(storage: MemoryStorage, clock: FakeClock) -> PersistenceService:
    return PersistenceService(storage, CacheSettings(), clock=clock)


@pytest.fixture
def usd_snapshot() -> RateSnapshot:
    """USD-based snapshot with round numbers for easy arithmetic."""
    return RateSnapshot(
        base="USD",
        rates={
            "CNY": Decimal("7.2"),
            "EUR": Decimal("0.9"),
            "GBP": Decimal("0.8"),
            "JPY": Decimal("150"),
        },
        timestamp_ms=int(BASE_TIME * 1000),
        source=API_SOURCE,
    )
