# candle_trader/markets/models.py
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class Direction(str, Enum):
    """اتجاه الصفقة"""
    RISE = "RISE"
    FALL = "FALL"

    @property
    def contract_type(self) -> str:
        return "CALL" if self is Direction.RISE else "PUT"


def classify_direction(open_price: float, close_price: float) -> Direction:
    # التساوي يعتبر هبوطاً
    return Direction.RISE if close_price > open_price else Direction.FALL


@dataclass(frozen=True)
class Candle:
    epoch: int
    open: float
    high: float
    low: float
    close: float
    direction: Direction
    timestamp: str

    @classmethod
    def from_response(cls, raw: Dict[str, Any]) -> "Candle":
        """بناء شمعة من عنصر candles في رد ticks_history"""
        epoch = int(raw["epoch"])
        open_price = float(raw["open"])
        close_price = float(raw["close"])
        return cls(
            epoch=epoch,
            open=open_price,
            high=float(raw["high"]),
            low=float(raw["low"]),
            close=close_price,
            direction=classify_direction(open_price, close_price),
            timestamp=datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat(),
        )

    def to_dict(self):
        return {
            "epoch": self.epoch,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "direction": self.direction.value,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Trade:
    contract_id: int
    purchase_time: int
    buy_price: float
    payout: float
    longcode: str

    @classmethod
    def from_response(cls, buy: Dict[str, Any]) -> "Trade":
        return cls(
            contract_id=buy["contract_id"],
            purchase_time=buy.get("purchase_time"),
            buy_price=float(buy.get("buy_price", 0)),
            payout=float(buy.get("payout", 0)),
            longcode=buy.get("longcode", ""),
        )

    def to_dict(self):
        return {
            "contract_id": self.contract_id,
            "purchase_time": self.purchase_time,
            "buy_price": self.buy_price,
            "payout": self.payout,
            "longcode": self.longcode,
        }


@dataclass(frozen=True)
class Balance:
    balance: float
    currency: str

    def to_dict(self):
        return {"balance": self.balance, "currency": self.currency}
