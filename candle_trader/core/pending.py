# candle_trader/core/pending.py
"""
جدول الطلبات المعلقة: ربط كل رد بطلبه عبر req_id

كل الوصول يتم من خيط حلقة الأحداث فقط، لذلك لا حاجة لقفل.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from candle_trader.core.exceptions import DerivAPIError, RequestTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    req_id: int
    future: asyncio.Future
    deadline: float
    sent_at: float = field(default_factory=time.monotonic)

    @property
    def timeout(self) -> float:
        return self.deadline - self.sent_at


class PendingRequests:
    """طلبات بانتظار الرد مع مهلة لكل طلب"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._last_id = 0
        self._entries: Dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, req_id: int) -> bool:
        return req_id in self._entries

    @property
    def last_id(self) -> int:
        return self._last_id

    def next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    def register(self, timeout: float) -> PendingRequest:
        """حجز رقم جديد وتخزين طلب معلق"""
        req_id = self.next_id()
        if req_id in self._entries:
            raise RuntimeError(f"req_id {req_id} is already pending")

        now = self._clock()
        entry = PendingRequest(
            req_id=req_id,
            future=asyncio.get_running_loop().create_future(),
            deadline=now + timeout,
            sent_at=now,
        )
        self._entries[req_id] = entry
        return entry

    def discard(self, req_id: int) -> Optional[PendingRequest]:
        return self._entries.pop(req_id, None)

    def resolve(self, response: Dict[str, Any]) -> bool:
        """تسليم الرد للطلب المطابق، الردود غير المعروفة تُهمل"""
        req_id = response.get("req_id")
        entry = self._entries.pop(req_id, None) if req_id is not None else None
        if entry is None:
            logger.debug(f"Dropping response without pending request: req_id={req_id}")
            return False

        if entry.future.done():
            return False

        error = response.get("error")
        if error is not None:
            try:
                exc = DerivAPIError.from_payload(error)
            except Exception:
                logger.exception(f"Malformed error payload for req_id={req_id}")
                exc = DerivAPIError(None, f"Malformed error payload: {error!r}")
            entry.future.set_exception(exc)
        else:
            entry.future.set_result(response)
        return True

    def expire(self, now: Optional[float] = None) -> int:
        """فشل كل طلب تجاوز مهلته"""
        now = self._clock() if now is None else now
        expired: List[PendingRequest] = [
            entry for entry in self._entries.values() if entry.deadline <= now
        ]
        for entry in expired:
            del self._entries[entry.req_id]
            if not entry.future.done():
                entry.future.set_exception(RequestTimeoutError(entry.req_id, entry.timeout))

        if expired:
            logger.warning(f"⏳ Expired {len(expired)} pending request(s)")
        return len(expired)

    def fail_all(self, exc: Exception) -> int:
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            if not entry.future.done():
                entry.future.set_exception(exc)
        return len(entries)
