# tests/unit/test_timeframe.py
import pytest
from datetime import datetime, timezone

from candle_trader.markets.timeframe import candle_close_time, next_boundary_ms, next_fetch_time_ms


def _ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


@pytest.mark.parametrize("granularity", [60, 120, 300, 900, 3600, 86400])
@pytest.mark.parametrize("now", [0.5, 59, 60, 1735732807, 1735732800, 1735733099.999])
def test_candle_close_time_is_closed_multiple(now, granularity):
    end = candle_close_time(now, granularity)

    assert end < now
    assert end % granularity == 0
    assert end == (int(now) // granularity) * granularity - granularity


def test_candle_close_time_known_value():
    # 12:00:07 → الشمعة المغلقة الأخيرة تنتهي عند 11:55:00
    now = _ms(2025, 1, 1, 12, 0, 7) / 1000
    assert candle_close_time(now, 300) == _ms(2025, 1, 1, 11, 55, 0) // 1000


def test_next_fetch_scenario_five_minutes():
    now = _ms(2025, 1, 1, 12, 0, 7)

    assert next_boundary_ms(now, 300_000) == _ms(2025, 1, 1, 12, 5, 0)
    assert next_fetch_time_ms(now, 300_000) == _ms(2025, 1, 1, 12, 5, 2)


def test_next_boundary_on_exact_boundary():
    now = _ms(2025, 1, 1, 12, 5, 0)
    assert next_boundary_ms(now, 300_000) == now


def test_next_fetch_custom_offset():
    now = _ms(2025, 1, 1, 12, 0, 59)
    assert next_fetch_time_ms(now, 60_000, offset_ms=500) == _ms(2025, 1, 1, 12, 1, 0) + 500
