# candle_trader/core/exceptions.py
"""
أنواع الأخطاء الخاصة بعميل التداول
"""
from typing import Any, Dict, Optional

AUTHORIZATION_ERROR_CODES = frozenset({"AuthorizationRequired", "InvalidToken"})


def is_authorization_error(code: Optional[str]) -> bool:
    return code in AUTHORIZATION_ERROR_CODES


class TradingError(Exception):
    """الخطأ الأساسي لكل أخطاء النظام"""


class ConfigurationError(TradingError):
    """إعدادات ناقصة أو غير صالحة"""


class TransportError(TradingError):
    """فشل على مستوى الاتصال (المقبس غير متصل أو أغلق)"""


class RequestTimeoutError(TradingError):
    """انتهت مهلة الطلب قبل وصول الرد"""

    def __init__(self, req_id: int, timeout: float):
        super().__init__(f"Request {req_id} timed out after {timeout:.1f}s")
        self.req_id = req_id
        self.timeout = timeout


class NoDataError(TradingError):
    """الرد لا يحتوي على النتيجة المتوقعة"""


class DerivAPIError(TradingError):
    """خطأ أعاده الخادم داخل حقل error"""

    def __init__(self, code: Optional[str], message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{code}: {message}" if code else message)
        self.code = code
        self.message = message
        self.details = details or {}

    @classmethod
    def from_payload(cls, error: Dict[str, Any]) -> "DerivAPIError":
        """بناء الخطأ المناسب من كائن error القادم من الخادم"""
        if not isinstance(error, dict):
            return cls(None, str(error) or "Unknown error")

        code = error.get("code")
        message = error.get("message") or "Unknown error"
        details = error.get("details")
        if is_authorization_error(code):
            return AuthorizationError(code, message, details)
        return cls(code, message, details)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class AuthorizationError(DerivAPIError):
    """رمز الوصول غير صالح أو منتهي - لا يمكن الاستمرار بدون تدخل"""
