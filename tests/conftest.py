# tests/conftest.py
import pytest
from unittest.mock import AsyncMock, MagicMock

from candle_trader.config import Settings
from candle_trader.markets.models import Balance, Candle, Trade


@pytest.fixture
def settings():
    """إعدادات اختبار بدون ملف .env"""
    return Settings(
        _env_file=None,
        DERIV_API_TOKEN="test-token",
        SYMBOL="R_100",
        TIMEFRAME=300,
        STAKE=1.0,
        DURATION=5,
        LOG_DIR="logs-test",
    )


@pytest.fixture
def rise_candle():
    return Candle.from_response({
        "epoch": 1735732800,
        "open": "100.0",
        "high": "102.0",
        "low": "99.5",
        "close": "101.5",
    })


@pytest.fixture
def fall_candle():
    return Candle.from_response({
        "epoch": 1735732800,
        "open": 100.0,
        "high": 100.5,
        "low": 98.0,
        "close": 99.0,
    })


@pytest.fixture
def sample_trade():
    return Trade(
        contract_id=123456,
        purchase_time=1735733102,
        buy_price=1.0,
        payout=1.95,
        longcode="Win payout if Volatility 100 Index is strictly higher than entry spot at 5 minutes after contract start time.",
    )


@pytest.fixture
def mock_client(rise_candle, sample_trade):
    """عميل Deriv تجريبي"""
    client = MagicMock()
    client.connect = AsyncMock()
    client.close = AsyncMock()
    client.get_latest_candle = AsyncMock(return_value=rise_candle)
    client.place_trade = AsyncMock(return_value=sample_trade)
    client.get_balance = AsyncMock(return_value=Balance(balance=9999.0, currency="USD"))
    return client
