# candle_trader/services/stats.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BotStats:
    """إحصائيات البوت - يكتبها البوت فقط وتقرأها واجهة الحالة"""
    total_trades: int = 0
    successful_fetches: int = 0
    failed_fetches: int = 0
    last_candle: Optional[Dict[str, Any]] = None
    last_trade: Optional[Dict[str, Any]] = None
    last_balance: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None
    start_time: datetime = field(default_factory=utcnow)

    def snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        return {
            "total_trades": self.total_trades,
            "successful_fetches": self.successful_fetches,
            "failed_fetches": self.failed_fetches,
            "last_candle": self.last_candle,
            "last_trade": self.last_trade,
            "last_balance": self.last_balance,
            "last_error": self.last_error,
            "start_time": self.start_time.isoformat(),
            "uptime": int((now - self.start_time).total_seconds()),
        }
