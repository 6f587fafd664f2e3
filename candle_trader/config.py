from pydantic_settings import BaseSettings
from typing import Optional

from candle_trader.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    # الإعدادات الأساسية
    PROJECT_NAME: str = "Binary Options Test Bot"
    VERSION: str = "1.0.0"

    # Deriv
    DERIV_APP_ID: str = "1089"
    DERIV_API_TOKEN: Optional[str] = None
    DERIV_WS_URL: str = "wss://ws.derivws.com/websockets/v3"

    # إعدادات التداول
    SYMBOL: str = "R_100"
    TIMEFRAME: int = 300  # ثواني (5 دقائق)
    STAKE: float = 1.0
    DURATION: int = 5  # دقائق
    CURRENCY: str = "USD"
    STRATEGY: str = "follow"
    FETCH_DELAY_MS: int = 2000

    # إعدادات الاتصال
    REQUEST_TIMEOUT: float = 30.0
    SWEEP_INTERVAL: float = 1.0

    # خادم الحالة
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    def require_token(self) -> str:
        """التحقق من وجود رمز الوصول"""
        if not self.DERIV_API_TOKEN:
            raise ConfigurationError("DERIV_API_TOKEN environment variable not set")
        return self.DERIV_API_TOKEN


def get_settings() -> Settings:
    return Settings()
