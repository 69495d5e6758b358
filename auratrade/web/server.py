"""Web dashboard for the simulated bot: market, ledger, analysis and telemetry."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote_plus

from fastapi import FastAPI, Form, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from loguru import logger

from auratrade.app.config import AppConfig, load_config
from auratrade.app.logger import setup_logger
from auratrade.app.main import build_engine, resolve_config_path
from auratrade.app.trade_engine import TradeEngine


ROOT_DIR = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

LOGGER = logging.getLogger(__name__)


def _base_config() -> AppConfig:
    return load_config(resolve_config_path(ROOT_DIR))


def _redirect_with_msg(path: str, msg: str) -> RedirectResponse:
    return RedirectResponse(url=f"{path}?msg={quote_plus(msg)}", status_code=303)


class DashboardChannel:
    """Fans engine snapshots out to dashboard websockets.

    A payload identical to the last one published is not resent; clients
    whose send fails are dropped.
    """

    def __init__(self) -> None:
        self.clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._last_payload: str | None = None

    async def join(self, websocket: WebSocket, snapshot: dict[str, Any]) -> None:
        await websocket.accept()
        await websocket.send_text(json.dumps(snapshot, default=str))
        async with self._lock:
            self.clients.add(websocket)

    async def leave(self, websocket: WebSocket) -> None:
        async with self._lock:
            self.clients.discard(websocket)

    async def publish(self, snapshot: dict[str, Any]) -> int:
        payload = json.dumps(snapshot, default=str)
        if payload == self._last_payload:
            return 0
        self._last_payload = payload

        async with self._lock:
            clients = list(self.clients)
        stale = []
        for websocket in clients:
            try:
                await websocket.send_text(payload)
            except Exception as exc:  # noqa: BLE001
                LOGGER.info("Dropping dashboard client after send error: %s", exc)
                stale.append(websocket)
        if stale:
            async with self._lock:
                self.clients.difference_update(stale)
        return len(clients) - len(stale)


app = FastAPI(title="auratrade dashboard")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
APP_CONFIG = _base_config()
engine: TradeEngine = build_engine(APP_CONFIG, logger)

dashboard_channel = DashboardChannel()
ws_broadcast_task: asyncio.Task[None] | None = None


async def _ws_dashboard_broadcaster() -> None:
    while True:
        try:
            if dashboard_channel.clients:
                await dashboard_channel.publish(engine.snapshot())
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("WS broadcast error: %s", exc)
        await asyncio.sleep(APP_CONFIG.web.broadcast_interval_sec)


@app.on_event("startup")
async def startup_event() -> None:
    global ws_broadcast_task
    setup_logger(APP_CONFIG.logging)
    if APP_CONFIG.bot.auto_connect:
        engine.connect()
    if APP_CONFIG.bot.auto_arm:
        engine.arm()
    engine.start()
    ws_broadcast_task = asyncio.create_task(_ws_dashboard_broadcaster(), name="ws-dashboard-broadcast")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    global ws_broadcast_task
    if ws_broadcast_task is not None:
        ws_broadcast_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ws_broadcast_task
        ws_broadcast_task = None
    await engine.stop()


@app.get("/")
async def dashboard(request: Request):
    snapshot = engine.snapshot()
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "snapshot": snapshot,
            "state": snapshot["state"],
            "ledger": snapshot["ledger"],
            "market": snapshot["market"],
            "health": snapshot["health"],
            "settings": snapshot["settings"],
            "assets": snapshot["assets"],
            "logs": snapshot["logs"],
            "modes": ["conservative", "balanced", "aggressive", "custom"],
            "msg": request.query_params.get("msg", ""),
        },
    )


@app.get("/api/snapshot")
async def api_snapshot():
    return engine.snapshot()


@app.get("/api/prices")
async def api_prices():
    market = engine.snapshot()["market"]
    return {"asset": market["asset"], "current_price": market["current_price"], "points": market["points"]}


@app.websocket("/ws/dashboard")
async def ws_dashboard(websocket: WebSocket):
    try:
        await dashboard_channel.join(websocket, engine.snapshot())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("WS client error: %s", exc)
    finally:
        await dashboard_channel.leave(websocket)


@app.post("/bot/connect")
async def bot_connect():
    engine.connect()
    return _redirect_with_msg("/", "Exchange link connected (simulated)")


@app.post("/bot/arm")
async def bot_arm():
    if not engine.arm():
        return _redirect_with_msg("/", "Connect before arming the bot")
    return _redirect_with_msg("/", "Bot armed")


@app.post("/bot/disarm")
async def bot_disarm():
    engine.disarm()
    return _redirect_with_msg("/", "Bot disarmed")


@app.post("/asset")
async def select_asset(asset: str = Form(...)):
    try:
        engine.select_asset(asset)
    except ValueError as exc:
        return _redirect_with_msg("/", str(exc))
    return _redirect_with_msg("/", f"Active product {engine.state.selected_asset}")


@app.post("/strategy")
async def select_strategy(mode: str = Form(...)):
    try:
        effective = engine.set_strategy_mode(mode)
    except ValueError as exc:
        return _redirect_with_msg("/", str(exc))
    return _redirect_with_msg("/", f"Strategy {effective.strategy_mode} risk={effective.risk_fraction:.0%}")


@app.post("/positions/{asset}/close")
async def close_position(asset: str):
    decision = engine.close_position(asset)
    if not decision.allowed:
        return _redirect_with_msg("/", f"Close failed: {decision.reason}")
    return _redirect_with_msg("/", f"{asset.upper()} position closed")


@app.post("/api/strategy-advice")
async def strategy_advice(objective: str = Form(...)):
    try:
        advice = await engine.advise_strategy(objective)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Strategy advice error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "advice_failed"})
    return {"mode": engine.state.strategy_mode, "objective": objective, "advice": advice}
