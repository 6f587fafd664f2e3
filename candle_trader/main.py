import asyncio
import contextlib
import logging
import signal
import sys
import traceback
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from candle_trader.config import Settings, get_settings
from candle_trader.core.exceptions import ConfigurationError, TradingError
from candle_trader.providers.deriv_client import DerivClient
from candle_trader.routers import status
from candle_trader.routers.logging_config import setup_logging
from candle_trader.services.trading_bot import TradingBot

logger = logging.getLogger(__name__)


def create_app(bot: TradingBot, settings: Settings) -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION
    )
    app.state.bot = bot
    app.state.settings = settings

    # Middleware لتسجيل الأخطاء غير المعالجة
    @app.middleware("http")
    async def log_request_errors(request: Request, call_next):
        start_time = datetime.now()
        try:
            return await call_next(request)
        except Exception as e:
            process_time = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"💥 ERROR in {request.method} {request.url}: {str(e)}")
            logger.error(f"   Traceback:\n{traceback.format_exc()}")
            logger.error(f"   Time: {process_time:.2f}ms")
            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal Server Error",
                    "error": str(e),
                    "path": str(request.url.path),
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }
            )

    app.include_router(status.router)
    return app


def build_bot(settings: Settings) -> TradingBot:
    client = DerivClient(
        app_id=settings.DERIV_APP_ID,
        api_token=settings.require_token(),
        ws_url=settings.DERIV_WS_URL,
        request_timeout=settings.REQUEST_TIMEOUT,
        sweep_interval=settings.SWEEP_INTERVAL,
        currency=settings.CURRENCY,
    )
    return TradingBot(client, settings)


class StatusServer(uvicorn.Server):
    """خادم الحالة - الإشارات تُدار في serve() وليس داخل uvicorn"""

    def install_signal_handlers(self):
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


async def serve(settings: Settings) -> int:
    """تشغيل البوت وخادم الحالة حتى وصول إشارة إيقاف أو خطأ تفويض"""
    bot = build_bot(settings)
    app = create_app(bot, settings)
    server = StatusServer(uvicorn.Config(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    ))

    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    def _on_signal(sig: signal.Signals):
        logger.info(f"🛑 Received {sig.name}, shutting down gracefully...")
        server.should_exit = True
        shutdown.set()

    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
            handled.append(sig)
        except NotImplementedError:
            # Windows
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(_on_signal, signal.Signals(s)))

    server_task = asyncio.create_task(server.serve())
    logger.info(f"🌐 Health server running on port {settings.PORT}")
    logger.info(f"   http://localhost:{settings.PORT}/health")
    logger.info(f"   http://localhost:{settings.PORT}/stats")

    start_task = asyncio.create_task(bot.start())
    shutdown_waiter = asyncio.create_task(shutdown.wait())
    stop_waiter = asyncio.create_task(bot.stopped.wait())

    try:
        # الإشارة أثناء الاتصال لا تنتظر انتهاء التفويض
        await asyncio.wait({start_task, shutdown_waiter}, return_when=asyncio.FIRST_COMPLETED)

        if not start_task.done():
            start_task.cancel()
            try:
                await start_task
            except asyncio.CancelledError:
                pass
            await server_task
            await bot.stop()
            return 0

        error = start_task.exception()
        if error is not None:
            logger.error(f"❌ Fatal error: {error}", exc_info=None if isinstance(error, TradingError) else error)
            server.should_exit = True
            await server_task
            await bot.stop()
            return 1

        await asyncio.wait({server_task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)

        if not server_task.done():
            server.should_exit = True
            await server_task

        await bot.stop()
        return 1 if bot.fatal_error else 0
    finally:
        for task in (shutdown_waiter, stop_waiter):
            task.cancel()
        for sig in handled:
            loop.remove_signal_handler(sig)


def run():
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)

    try:
        settings.require_token()
    except ConfigurationError as e:
        logger.error(f"❌ ERROR: {e}")
        logger.info("Please set your Deriv API token in environment variables.")
        sys.exit(1)

    sys.exit(asyncio.run(serve(settings)))


if __name__ == "__main__":
    run()
