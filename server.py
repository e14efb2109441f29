import asyncio
import json
import logging
import time

import aiohttp
from aiohttp import web

from control import ControlSignal
from orchestrator import ConfigError, Orchestrator, validate_config
from shape_service import MissingCredentialError, ShapeServiceClient, ShapeServiceError

logger = logging.getLogger(__name__)

ORCH = web.AppKey("orchestrator", Orchestrator)
CLIENT = web.AppKey("shape_client", ShapeServiceClient)
SESSION = web.AppKey("http_session", aiohttp.ClientSession)
VIEWERS = web.AppKey("viewers", set)
TICK_HZ = web.AppKey("tick_hz", float)


async def _read_json(request):
    try:
        data = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text=json.dumps({"ok": False, "error": "body must be JSON"}),
            content_type="application/json",
        )
    return data


def _error(status, message):
    return web.json_response({"ok": False, "error": message}, status=status)


async def ws_handler(request):
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    viewers = request.app[VIEWERS]
    viewers.add(ws)
    logger.info("Viewer connected: %d", len(viewers))

    try:
        await ws.send_json(request.app[ORCH].frame().to_dict())
        async for _ in ws:
            pass
    finally:
        viewers.discard(ws)
        logger.info("Viewer disconnected: %d", len(viewers))

    return ws


async def _send(ws, payload, timeout):
    await asyncio.wait_for(ws.send_str(payload), timeout)


async def _close(ws, timeout):
    await asyncio.wait_for(ws.close(), timeout)


async def _broadcast(app, data: dict):
    """Send one frame to every viewer at once; viewers that fail or lag are dropped."""
    viewers = app[VIEWERS]
    if not viewers:
        return
    payload = json.dumps(data)
    targets = list(viewers)
    timeout = app[ORCH].params.viewer_send_timeout
    results = await asyncio.gather(
        *(_send(ws, payload, timeout) for ws in targets),
        return_exceptions=True,
    )
    dead = []
    for ws, result in zip(targets, results):
        if isinstance(result, asyncio.TimeoutError):
            logger.warning("Dropping viewer: send took longer than %.2fs", timeout)
            dead.append(ws)
        elif isinstance(result, (ConnectionError, RuntimeError)):
            logger.info("Dropping viewer: %s", result)
            dead.append(ws)
        elif isinstance(result, BaseException):
            raise result
    for ws in dead:
        viewers.discard(ws)
    if dead:
        await asyncio.gather(*(_close(ws, timeout) for ws in dead), return_exceptions=True)


async def post_hand(request):
    data = await _read_json(request)
    signal = ControlSignal.from_dict(data)
    request.app[ORCH].slot.publish(signal)
    return web.json_response({"ok": True, "control": signal.to_dict()})


async def get_config(request):
    return web.json_response({"ok": True, "config": request.app[ORCH].config.to_dict()})


async def post_config(request):
    orch = request.app[ORCH]
    data = await _read_json(request)
    try:
        cfg = validate_config(data, base=orch.config, params=orch.params)
    except ConfigError as e:
        logger.warning("Rejected config %s: %s", data, e)
        return _error(400, str(e))
    orch.apply_config(cfg)
    return web.json_response({"ok": True, "config": cfg.to_dict()})


async def post_generate(request):
    orch = request.app[ORCH]
    data = await _read_json(request)
    prompt = data.get("prompt", "") if isinstance(data, dict) else ""
    if not isinstance(prompt, str) or not prompt.strip():
        return _error(400, "prompt must be a non-empty string")

    try:
        points = await request.app[CLIENT].generate_points(prompt.strip(), session=request.app[SESSION])
    except MissingCredentialError as e:
        logger.error("Shape generation unavailable: %s", e)
        return _error(503, str(e))
    except ShapeServiceError as e:
        logger.error("Shape generation failed: %s", e)
        return _error(502, str(e))

    orch.apply_generated_points(points)
    return web.json_response({
        "ok": True,
        "points": len(points) // 3,
        "config": orch.config.to_dict(),
    })


async def get_frame(request):
    return web.json_response(request.app[ORCH].frame().to_dict())


async def _tick_loop(app):
    orch = app[ORCH]
    period = 1.0 / app[TICK_HZ]
    start = prev = time.monotonic()
    while True:
        await asyncio.sleep(period)
        now = time.monotonic()
        elapsed = now - start
        orch.tick(now - prev, elapsed)
        prev = now
        if app[VIEWERS]:
            await _broadcast(app, orch.frame().to_dict())


async def _session_ctx(app):
    app[SESSION] = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=app[CLIENT].timeout))
    yield
    await app[SESSION].close()


async def _ticker_ctx(app):
    task = asyncio.create_task(_tick_loop(app))
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    for ws in list(app[VIEWERS]):
        await ws.close()


def create_app(orchestrator=None, client=None, tick=True):
    orch = orchestrator if orchestrator is not None else Orchestrator()

    app = web.Application()
    app[ORCH] = orch
    app[CLIENT] = client if client is not None else ShapeServiceClient(params=orch.params)
    app[VIEWERS] = set()
    app[TICK_HZ] = float(orch.params.tick_hz)

    app.router.add_get("/ws", ws_handler)
    app.router.add_post("/hand", post_hand)
    app.router.add_get("/config", get_config)
    app.router.add_post("/config", post_config)
    app.router.add_post("/generate", post_generate)
    app.router.add_get("/frame", get_frame)

    app.cleanup_ctx.append(_session_ctx)
    if tick:
        app.cleanup_ctx.append(_ticker_ctx)
    return app
