# candle_trader/services/trading_bot.py
"""
حلقة التداول المجدولة

تنتظر حتى إغلاق الشمعة القادمة (+ مهلة قصيرة) ثم تنفذ دورة واحدة:
جلب الشمعة ← تحديد الاتجاه ← تنفيذ الصفقة ← تحديث الرصيد
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from candle_trader.config import Settings
from candle_trader.core.exceptions import AuthorizationError, TradingError
from candle_trader.markets.timeframe import next_fetch_time_ms
from candle_trader.providers.deriv_client import DerivClient
from candle_trader.services.stats import BotStats
from candle_trader.services.strategy import TradeStrategy, get_strategy

logger = logging.getLogger(__name__)
perf_logger = logging.getLogger("performance")


class BotState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    RUNNING = "running"
    STOPPED = "stopped"


def _iso(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).isoformat()


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


@dataclass
class CycleResult:
    """نتيجة دورة تداول واحدة"""
    started_at: str
    success: bool = False
    candle: Optional[Dict[str, Any]] = None
    direction: Optional[str] = None
    trade: Optional[Dict[str, Any]] = None
    balance: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    fetch_ms: float = 0.0
    trade_ms: float = 0.0
    balance_ms: float = 0.0
    total_ms: float = 0.0

    @property
    def overhead_ms(self) -> float:
        return round(self.total_ms - self.fetch_ms - self.trade_ms - self.balance_ms, 2)

    def to_dict(self):
        return {
            "started_at": self.started_at,
            "success": self.success,
            "candle": self.candle,
            "direction": self.direction,
            "trade": self.trade,
            "balance": self.balance,
            "error": self.error,
            "timings": {
                "fetch_ms": self.fetch_ms,
                "trade_ms": self.trade_ms,
                "balance_ms": self.balance_ms,
                "overhead_ms": self.overhead_ms,
                "total_ms": self.total_ms,
            },
        }


class TradingBot:
    """بوت الخيارات الثنائية: دورة واحدة لكل شمعة"""

    def __init__(
        self,
        client: DerivClient,
        settings: Settings,
        strategy: Optional[TradeStrategy] = None,
        stats: Optional[BotStats] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.symbol = settings.SYMBOL
        self.timeframe = settings.TIMEFRAME
        self.stake = settings.STAKE
        self.duration = settings.DURATION
        self.fetch_delay_ms = settings.FETCH_DELAY_MS
        self.strategy = strategy or get_strategy(settings.STRATEGY)
        self.stats = stats or BotStats()

        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None

        self.state = BotState.IDLE
        self.next_fetch_at: Optional[str] = None
        self.fatal_error: Optional[AuthorizationError] = None
        self.stopped = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self.state is not BotState.STOPPED

    async def start(self):
        """الاتصال والتحقق من الرصيد ثم بدء الجدولة"""
        if self.state is BotState.STOPPED:
            raise RuntimeError("Bot has been stopped")

        logger.info("🚀 Binary Options Test Bot Starting...")
        logger.info("⚙️  Configuration:")
        logger.info(f"   Symbol: {self.symbol}")
        logger.info(f"   Timeframe: {self.timeframe}s ({self.timeframe / 60:g} minutes)")
        logger.info(f"   Stake: ${self.stake}")
        logger.info(f"   Duration: {self.duration} minutes")
        logger.info(f"   Strategy: {self.strategy.name}")

        await self.client.connect()

        balance = await self.client.get_balance()
        self.stats.last_balance = balance.to_dict()
        logger.info(f"💰 Account Balance: ${balance.balance} {balance.currency}")

        self._loop_task = asyncio.create_task(self.run())

    def schedule_next(self) -> float:
        """حساب موعد الدورة القادمة وإرجاع مدة الانتظار بالثواني"""
        now_ms = int(self._clock() * 1000)
        period_ms = self.timeframe * 1000
        fetch_at_ms = next_fetch_time_ms(now_ms, period_ms, self.fetch_delay_ms)
        delay_ms = fetch_at_ms - now_ms

        self.state = BotState.WAITING
        self.next_fetch_at = _iso(fetch_at_ms)

        logger.info(f"⏰ Next candle closes at: {_iso(fetch_at_ms - self.fetch_delay_ms)}")
        logger.info(f"⏰ Will fetch and trade at: {self.next_fetch_at}")
        logger.info(f"⏰ Waiting {delay_ms / 1000:.1f} seconds...")
        return delay_ms / 1000

    async def run(self):
        # مؤقت واحد فقط؛ لا يُعاد تسليحه إلا بعد انتهاء الدورة
        while self.state is not BotState.STOPPED:
            delay = self.schedule_next()
            await self._sleep(delay)
            if self.state is BotState.STOPPED:
                break
            await self.execute_cycle()

    async def execute_cycle(self) -> CycleResult:
        async with self._lock:
            return await self._execute_cycle()

    async def _execute_cycle(self) -> CycleResult:
        previous_state = self.state
        self.state = BotState.RUNNING
        cycle_start = time.perf_counter()
        result = CycleResult(started_at=_iso(int(self._clock() * 1000)))

        logger.info("━" * 60)
        logger.info(f"🔄 TRADING CYCLE START - {result.started_at}")
        logger.info("━" * 60)

        try:
            logger.info("📥 Fetching latest closed candle...")
            step_start = time.perf_counter()
            candle = await self.client.get_latest_candle(self.symbol, self.timeframe)
            result.fetch_ms = _elapsed_ms(step_start)
            result.candle = candle.to_dict()

            self.stats.successful_fetches += 1
            self.stats.last_candle = result.candle

            logger.info(f"✅ Candle fetched in {result.fetch_ms}ms")
            logger.info(f"   Time: {candle.timestamp}")
            logger.info(f"   Open: {candle.open}  High: {candle.high}  Low: {candle.low}  Close: {candle.close}")
            logger.info(f"   Direction: {candle.direction.value} {'🟢' if candle.direction.value == 'RISE' else '🔴'}")

            direction = self.strategy.decide(candle)
            result.direction = direction.value
            logger.info(f"📊 Strategy '{self.strategy.name}': Trade {direction.value}")

            logger.info(f"💼 Placing {direction.value} trade...")
            step_start = time.perf_counter()
            trade = await self.client.place_trade(self.symbol, direction, self.stake, self.duration)
            result.trade_ms = _elapsed_ms(step_start)
            result.trade = trade.to_dict()

            self.stats.total_trades += 1
            self.stats.last_trade = {
                **result.trade,
                "direction": direction.value,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

            logger.info(f"✅ Trade placed in {result.trade_ms}ms")
            logger.info(f"   Contract ID: {trade.contract_id}")
            logger.info(f"   Buy Price: ${trade.buy_price}")
            logger.info(f"   Potential Payout: ${trade.payout}")
            logger.info(f"   {trade.longcode}")

            step_start = time.perf_counter()
            balance = await self.client.get_balance()
            result.balance_ms = _elapsed_ms(step_start)
            result.balance = balance.to_dict()
            self.stats.last_balance = result.balance
            logger.info(f"💰 Current Balance: ${balance.balance} {balance.currency}")

            result.success = True

        except AuthorizationError as e:
            self._record_failure(result, e)
            logger.error("❌ FATAL: Authorization failed. Check your API token.")
            self.fatal_error = e
            await self.stop()

        except Exception as e:
            self._record_failure(result, e)
            if not isinstance(e, TradingError):
                logger.exception("Unexpected error in trading cycle")

        finally:
            if self.state is BotState.RUNNING:
                self.state = previous_state

        result.total_ms = _elapsed_ms(cycle_start)
        logger.info(f"⏱️  TOTAL EXECUTION TIME: {result.total_ms}ms")
        logger.info(f"   Fetch: {result.fetch_ms}ms  Trade: {result.trade_ms}ms  "
                    f"Balance: {result.balance_ms}ms  Overhead: {result.overhead_ms}ms")
        logger.info("━" * 60)

        perf_logger.info({
            "event": "trading_cycle",
            "symbol": self.symbol,
            "success": result.success,
            **result.to_dict()["timings"],
        })
        return result

    def _record_failure(self, result: CycleResult, error: Exception):
        result.error = str(error)
        self.stats.failed_fetches += 1
        self.stats.last_error = result.error
        logger.error(f"❌ ERROR in trading cycle: {error}")

    def stats_snapshot(self) -> Dict[str, Any]:
        snapshot = self.stats.snapshot()
        snapshot["state"] = self.state.value
        snapshot["next_fetch_at"] = self.next_fetch_at
        return snapshot

    async def stop(self):
        """إيقاف الجدولة وإغلاق الاتصال"""
        if self.state is BotState.STOPPED:
            return

        logger.info("⏹️  Stopping bot...")
        self.state = BotState.STOPPED
        self.next_fetch_at = None

        task, self._loop_task = self._loop_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self.client.close()
        self.stopped.set()
