# candle_trader/routers/status.py
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse

from candle_trader.services.trading_bot import TradingBot

router = APIRouter(tags=["status"])


def get_bot(request: Request) -> TradingBot:
    return request.app.state.bot


@router.get("/health")
async def health(request: Request):
    bot = get_bot(request)
    return {
        "status": "running" if bot.is_running else "stopped",
        "state": bot.state.value,
        "stats": bot.stats_snapshot(),
    }


@router.get("/stats")
async def stats(request: Request):
    return get_bot(request).stats_snapshot()


@router.post("/trade")
async def trigger_trade(request: Request):
    """تنفيذ دورة تداول واحدة خارج الجدولة"""
    bot = get_bot(request)
    if not bot.is_running:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "error": "Bot is stopped"},
        )

    result = await bot.execute_cycle()
    if not result.success:
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": result.error,
                "result": result.to_dict(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    return {
        "status": "trade executed",
        "result": result.to_dict(),
        "stats": bot.stats_snapshot(),
    }


STATUS_PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>{title}</title>
  <style>
    body {{ font-family: monospace; padding: 20px; background: #1e1e1e; color: #fff; }}
    .card {{ background: #2d2d2d; padding: 20px; margin: 10px 0; border-radius: 8px; }}
    .stat {{ margin: 10px 0; }}
    .green {{ color: #4caf50; }}
    .red {{ color: #f44336; }}
    h1 {{ color: #2196f3; }}
  </style>
</head>
<body>
  <h1>🤖 {title}</h1>
  <div class="card">
    <h2>Status: <span id="state" class="{state_class}">{state}</span></h2>
    <div class="stat">Symbol: {symbol}</div>
    <div class="stat">Timeframe: {timeframe_minutes:g} minutes</div>
    <div class="stat">Stake: ${stake}</div>
    <div class="stat">Duration: {duration} minutes</div>
    <div class="stat">Strategy: {strategy}</div>
  </div>
  <div class="card">
    <h2>Statistics</h2>
    <div id="stats">Loading...</div>
  </div>
  <script>
    function updateStats() {{
      fetch('/stats')
        .then(r => r.json())
        .then(stats => {{
          const state = document.getElementById('state');
          state.textContent = stats.state.toUpperCase();
          state.className = stats.state === 'stopped' ? 'red' : 'green';
          document.getElementById('stats').innerHTML =
            '<div class="stat">Total Trades: ' + stats.total_trades + '</div>' +
            '<div class="stat">Successful Fetches: ' + stats.successful_fetches + '</div>' +
            '<div class="stat">Failed Fetches: ' + stats.failed_fetches + '</div>' +
            '<div class="stat">Uptime: ' + stats.uptime + ' seconds</div>' +
            (stats.next_fetch_at ? '<div class="stat">Next Fetch: ' + stats.next_fetch_at + '</div>' : '') +
            (stats.last_balance ? '<div class="stat">Balance: ' + stats.last_balance.balance + ' ' + stats.last_balance.currency + '</div>' : '') +
            (stats.last_candle ? '<div class="stat">Last Candle: ' + stats.last_candle.direction + ' at ' + stats.last_candle.timestamp + '</div>' : '') +
            (stats.last_trade ? '<div class="stat">Last Trade: ' + stats.last_trade.direction + ' (ID: ' + stats.last_trade.contract_id + ')</div>' : '');
          if (stats.last_error) {{
            // نص الخطأ قادم من الخادم
            const error = document.createElement('div');
            error.className = 'stat red';
            error.textContent = 'Last Error: ' + stats.last_error;
            document.getElementById('stats').appendChild(error);
          }}
        }});
    }}
    updateStats();
    setInterval(updateStats, 5000);
  </script>
</body>
</html>
"""


@router.get("/{path:path}", response_class=HTMLResponse)
async def status_page(request: Request, path: str = ""):
    bot = get_bot(request)
    settings = request.app.state.settings
    return STATUS_PAGE.format(
        title=settings.PROJECT_NAME,
        state=bot.state.value.upper(),
        state_class="green" if bot.is_running else "red",
        symbol=bot.symbol,
        timeframe_minutes=bot.timeframe / 60,
        stake=bot.stake,
        duration=bot.duration,
        strategy=bot.strategy.name,
    )
