# candle_trader/providers/deriv_client.py
import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from candle_trader.core.exceptions import NoDataError, TransportError
from candle_trader.core.pending import PendingRequests
from candle_trader.markets.models import Balance, Candle, Direction, Trade
from candle_trader.markets.timeframe import candle_close_time

logger = logging.getLogger(__name__)

DERIV_WS_URL = "wss://ws.derivws.com/websockets/v3"


class DerivClient:
    """عميل Deriv عبر WebSocket - كل طلب يحمل req_id ويُطابق رده عبر جدول الطلبات المعلقة"""

    def __init__(
        self,
        app_id: str,
        api_token: str,
        ws_url: str = DERIV_WS_URL,
        request_timeout: float = 30.0,
        sweep_interval: float = 1.0,
        currency: str = "USD",
        clock: Callable[[], float] = time.time,
    ):
        self.app_id = app_id
        self.api_token = api_token
        self.ws_url = ws_url
        self.request_timeout = request_timeout
        self.sweep_interval = sweep_interval
        self.currency = currency
        self._clock = clock

        self.ws = None
        self.pending = PendingRequests()
        self._reader_task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._authorized = False

    @property
    def url(self) -> str:
        return f"{self.ws_url}?app_id={self.app_id}"

    @property
    def connected(self) -> bool:
        return self.ws is not None and self._authorized

    async def connect(self) -> Dict[str, Any]:
        """فتح الاتصال ثم التفويض، لا يكتمل إلا بعد قبول الرمز"""
        try:
            self.ws = await websockets.connect(self.url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            raise TransportError(f"Failed to connect to {self.ws_url}: {e}") from e

        logger.info("✅ Connected to Deriv API")
        self._reader_task = asyncio.create_task(self._read_loop())
        self._sweep_task = asyncio.create_task(self._sweep_loop())

        try:
            response = await self.authorize()
        except Exception:
            await self.close()
            raise

        self._authorized = True
        login_id = (response.get("authorize") or {}).get("loginid")
        logger.info(f"✅ Authorized successfully ({login_id})")
        return response

    async def authorize(self) -> Dict[str, Any]:
        return await self.send({"authorize": self.api_token})

    async def send(self, request: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        """إرسال طلب وانتظار الرد المطابق له"""
        if self.ws is None:
            raise TransportError("WebSocket is not connected")

        entry = self.pending.register(self.request_timeout if timeout is None else timeout)
        payload = dict(request)
        payload["req_id"] = entry.req_id

        try:
            await self.ws.send(json.dumps(payload))
        except ConnectionClosed as e:
            self.pending.discard(entry.req_id)
            raise TransportError(f"WebSocket closed while sending: {e}") from e

        return await entry.future

    async def _read_loop(self):
        """قراءة الرسائل الواردة وتوجيهها للطلبات المعلقة"""
        try:
            async for message in self.ws:
                try:
                    self._dispatch(message)
                except Exception:
                    # إطار واحد معطوب لا يوقف القارئ
                    logger.exception("Failed to dispatch incoming frame")
        except ConnectionClosed as e:
            logger.error(f"❌ WebSocket error: {e}")
        finally:
            self._authorized = False
            failed = self.pending.fail_all(TransportError("WebSocket closed"))
            if failed:
                logger.warning(f"⚠️  {failed} pending request(s) failed on disconnect")
            logger.info("⚠️  WebSocket closed")

    def _dispatch(self, message: Union[str, bytes]):
        try:
            response = json.loads(message)
        except (TypeError, ValueError) as e:
            logger.warning(f"Dropping undecodable frame: {e}")
            return

        if not isinstance(response, dict):
            logger.debug(f"Dropping non-object frame: {message!r}")
            return

        self.pending.resolve(response)

    async def _sweep_loop(self):
        # لكل طلب مهلة؛ الطلبات المنتهية تفشل هنا
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.pending.expire()

    async def close(self):
        """إغلاق الاتصال وإفشال كل الطلبات المعلقة"""
        self._authorized = False

        for task in (self._sweep_task, self._reader_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._sweep_task = None
        self._reader_task = None

        if self.ws is not None:
            ws, self.ws = self.ws, None
            await ws.close()

        self.pending.fail_all(TransportError("Client closed"))

    async def get_latest_candle(self, symbol: str, granularity: int = 300) -> Candle:
        """جلب آخر شمعة مغلقة"""
        end = candle_close_time(self._clock(), granularity)

        response = await self.send({
            "ticks_history": symbol,
            "adjust_start_time": 1,
            "count": 1,
            "end": end,
            "granularity": granularity,
            "style": "candles",
        })

        candles = response.get("candles") or []
        if not candles:
            raise NoDataError("No candle data received")

        return Candle.from_response(candles[0])

    async def place_trade(
        self,
        symbol: str,
        direction: Union[Direction, str],
        stake: float,
        duration: int,
    ) -> Trade:
        """طلب عرض سعر ثم شراء العقد بنفس السعر"""
        contract_type = Direction(direction).contract_type

        proposal_response = await self.send({
            "proposal": 1,
            "amount": stake,
            "basis": "stake",
            "contract_type": contract_type,
            "currency": self.currency,
            "duration": duration,
            "duration_unit": "m",
            "symbol": symbol,
        })

        proposal = proposal_response.get("proposal")
        if not proposal:
            raise NoDataError(f"Failed to get proposal: {json.dumps(proposal_response)}")

        logger.info(f"📊 Proposal: {contract_type} on {symbol} for ${stake}, Duration: {duration}min")
        logger.info(f"   Expected payout: ${proposal.get('payout')}")

        buy_response = await self.send({
            "buy": proposal["id"],
            "price": proposal.get("ask_price", stake),
        })

        buy = buy_response.get("buy")
        if not buy:
            raise NoDataError(f"Failed to buy contract: {json.dumps(buy_response)}")

        return Trade.from_response(buy)

    async def get_balance(self) -> Balance:
        response = await self.send({"balance": 1})

        balance = response.get("balance")
        if not balance:
            raise NoDataError(f"No balance data received: {json.dumps(response)}")

        return Balance(balance=float(balance["balance"]), currency=balance.get("currency", ""))
