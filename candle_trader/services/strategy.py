# candle_trader/services/strategy.py
"""
استراتيجيات تحديد اتجاه الصفقة من آخر شمعة مغلقة
"""
from typing import Callable, Dict, List, Type

from candle_trader.markets.models import Candle, Direction


class TradeStrategy:
    """الواجهة الأساسية لأي استراتيجية"""

    name: str = "base"
    description: str = ""

    def decide(self, candle: Candle) -> Direction:
        raise NotImplementedError


_STRATEGIES: Dict[str, Type[TradeStrategy]] = {}


def register_strategy(name: str) -> Callable[[Type[TradeStrategy]], Type[TradeStrategy]]:
    """ديكوراتور لتسجيل استراتيجية جديدة"""
    def decorator(strategy_class: Type[TradeStrategy]):
        if not issubclass(strategy_class, TradeStrategy):
            raise TypeError("Strategy must be a subclass of TradeStrategy")
        strategy_class.name = name.lower()
        _STRATEGIES[name.lower()] = strategy_class
        return strategy_class
    return decorator


@register_strategy("follow")
class FollowCandleStrategy(TradeStrategy):
    description = "Trade in the direction of the last closed candle"

    def decide(self, candle: Candle) -> Direction:
        return candle.direction


@register_strategy("reverse")
class ReverseCandleStrategy(TradeStrategy):
    description = "Trade against the direction of the last closed candle"

    def decide(self, candle: Candle) -> Direction:
        return Direction.FALL if candle.direction is Direction.RISE else Direction.RISE


def get_strategy(name: str) -> TradeStrategy:
    strategy_class = _STRATEGIES.get(name.lower())
    if strategy_class is None:
        raise ValueError(
            f"Unknown strategy '{name}'. Available: {', '.join(available_strategies())}"
        )
    return strategy_class()


def available_strategies() -> List[str]:
    return sorted(_STRATEGIES)
