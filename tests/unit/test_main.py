# tests/unit/test_main.py
import asyncio
import os
import signal
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from candle_trader import main
from candle_trader.core.exceptions import AuthorizationError, TransportError
from candle_trader.services.trading_bot import BotState, TradingBot

NOW = datetime(2025, 1, 1, 12, 0, 7, tzinfo=timezone.utc).timestamp()


@pytest.fixture
def serve_settings(settings):
    """خادم الحالة على منفذ عشوائي محلي"""
    return settings.model_copy(update={"HOST": "127.0.0.1", "PORT": 0})


def use_bot(monkeypatch, bot):
    monkeypatch.setattr(main, "build_bot", lambda settings: bot)


async def wait_until(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_sigterm_exits_cleanly(monkeypatch, mock_client, serve_settings):
    bot = TradingBot(mock_client, serve_settings, clock=lambda: NOW)
    use_bot(monkeypatch, bot)

    serve_task = asyncio.create_task(main.serve(serve_settings))
    await wait_until(lambda: bot.state is BotState.WAITING)

    os.kill(os.getpid(), signal.SIGTERM)

    assert await asyncio.wait_for(serve_task, timeout=10) == 0
    assert bot.state is BotState.STOPPED
    mock_client.close.assert_awaited()
    mock_client.get_latest_candle.assert_not_awaited()


@pytest.mark.asyncio
async def test_signal_during_startup_does_not_wait_for_authorization(monkeypatch, mock_client, serve_settings):
    async def never_authorizes():
        await asyncio.Event().wait()

    mock_client.connect.side_effect = never_authorizes
    bot = TradingBot(mock_client, serve_settings, clock=lambda: NOW)
    use_bot(monkeypatch, bot)

    serve_task = asyncio.create_task(main.serve(serve_settings))
    await wait_until(lambda: mock_client.connect.called)

    os.kill(os.getpid(), signal.SIGINT)

    assert await asyncio.wait_for(serve_task, timeout=10) == 0
    mock_client.close.assert_awaited()


@pytest.mark.asyncio
async def test_authorization_error_at_runtime_exits_with_1(monkeypatch, mock_client, serve_settings):
    mock_client.get_latest_candle.side_effect = AuthorizationError("InvalidToken", "The token is invalid.")
    bot = TradingBot(mock_client, serve_settings, clock=lambda: NOW, sleep=AsyncMock())
    use_bot(monkeypatch, bot)

    assert await asyncio.wait_for(main.serve(serve_settings), timeout=10) == 1
    assert bot.state is BotState.STOPPED
    mock_client.place_trade.assert_not_awaited()
    mock_client.close.assert_awaited()


@pytest.mark.asyncio
async def test_startup_connection_failure_exits_with_1(monkeypatch, mock_client, serve_settings):
    mock_client.connect.side_effect = TransportError("Failed to connect")
    bot = TradingBot(mock_client, serve_settings, clock=lambda: NOW)
    use_bot(monkeypatch, bot)

    assert await asyncio.wait_for(main.serve(serve_settings), timeout=10) == 1
    assert bot.state is BotState.STOPPED
    mock_client.close.assert_awaited()


@pytest.mark.asyncio
async def test_unexpected_startup_error_exits_with_1(monkeypatch, mock_client, serve_settings):
    mock_client.get_balance.side_effect = KeyError("balance")
    bot = TradingBot(mock_client, serve_settings, clock=lambda: NOW)
    use_bot(monkeypatch, bot)

    assert await asyncio.wait_for(main.serve(serve_settings), timeout=10) == 1
    mock_client.close.assert_awaited()
