"""
HTTP and WebSocket handlers for voxhub
"""
import hashlib
import json
import logging

from aiohttp import web

from .errors import MalformedMessage
from .hub import SignalingHub
from .transport import ConnectionManager
from .utils import generate_client_id

logger = logging.getLogger("voxhub")

hub_key = web.AppKey("hub", SignalingHub)
connections_key = web.AppKey("connections", ConnectionManager)

# ============================================================
# WEBSOCKET SIGNALING
# ============================================================


def decode_frame(raw: str):
    """Split a `{"type", "data"}` frame into (event, data)"""
    try:
        frame = json.loads(raw)
    except ValueError:
        raise MalformedMessage("frame is not valid JSON")
    if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
        raise MalformedMessage("frame must be an object with a string `type`")
    return frame["type"], frame.get("data")


async def ws_signaling(request: web.Request) -> web.WebSocketResponse:
    """One connection per client: presence, chat and voice signaling"""
    hub = request.app[hub_key]
    connections = request.app[connections_key]

    ws = web.WebSocketResponse()
    await ws.prepare(request)

    client_id = generate_client_id()
    connections.open(client_id, ws)
    hub.connect(client_id)
    connections.send(client_id, "connected", {"id": client_id})

    try:
        async for msg in ws:
            if msg.type == web.WSMsgType.TEXT:
                # Handle ping/pong for keepalive, queued behind pending events
                if msg.data == "ping":
                    connections.send_text(client_id, "pong")
                    continue
                try:
                    event, data = decode_frame(msg.data)
                except MalformedMessage as e:
                    hub.reject(client_id, e)
                    continue
                hub.dispatch(client_id, event, data)
            elif msg.type == web.WSMsgType.ERROR:
                logger.warning("WebSocket error for %s: %s", client_id, ws.exception())
    finally:
        hub.disconnect_cleanup(client_id)
        await connections.close(client_id)
        logger.info("📡 WebSocket closed for %s (remaining: %d)", client_id, len(connections))

    return ws

# ============================================================
# PRESENCE SNAPSHOT
# ============================================================


def presence_data(hub: SignalingHub) -> dict:
    return {
        "users": hub.registry.snapshot(),
        "channels": [
            {"name": name, "members": hub.voice_members(name)}
            for name in hub.voice.channels
        ],
    }


async def api_presence(request: web.Request) -> web.Response:
    """Current users and voice channels with ETag caching"""
    data = presence_data(request.app[hub_key])

    content = json.dumps(data, sort_keys=True)
    etag = hashlib.md5(content.encode()).hexdigest()

    if request.headers.get("If-None-Match") == etag:
        return web.Response(status=304)

    response = web.json_response({"ok": True, **data})
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "max-age=5"
    return response
