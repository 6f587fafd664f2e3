# candle_trader/markets/timeframe.py
import math


def candle_close_time(now: float, granularity: int) -> int:
    """نهاية آخر شمعة مغلقة بالكامل (بالثواني)"""
    now = int(math.floor(now))
    return (now // granularity) * granularity - granularity


def next_boundary_ms(now_ms: int, period_ms: int) -> int:
    return int(math.ceil(now_ms / period_ms)) * period_ms


def next_fetch_time_ms(now_ms: int, period_ms: int, offset_ms: int = 2000) -> int:
    """وقت الجلب: بعد إغلاق الشمعة القادمة بمهلة قصيرة"""
    return next_boundary_ms(now_ms, period_ms) + offset_ms
