#!/usr/bin/env python3
"""
voxhub - presence, chat and voice-channel signaling relay
WebSocket signaling + static client hosting
"""
import logging
import os
from pathlib import Path

from aiohttp import web

from voxhub.api import api_presence, connections_key, hub_key, ws_signaling
from voxhub.hub import SignalingHub
from voxhub.transport import DEFAULT_QUEUE_SIZE, ConnectionManager

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("voxhub")

THIS_DIR = Path(__file__).parent.resolve()
STATIC_DIR = Path(os.getenv('VOXHUB_STATIC_DIR', THIS_DIR / 'static'))
QUEUE_SIZE = int(os.getenv('VOXHUB_QUEUE_SIZE', DEFAULT_QUEUE_SIZE))


async def index(request):
    return web.FileResponse(STATIC_DIR / 'index.html')


def create_app() -> web.Application:
    """Create and configure the aiohttp application"""
    app = web.Application()

    connections = ConnectionManager(QUEUE_SIZE)
    app[connections_key] = connections
    app[hub_key] = SignalingHub(connections.send)

    # HTML routes
    app.router.add_get("/", index)

    # API routes
    app.router.add_get("/presence", api_presence)

    # WebSocket for presence, chat and voice signaling
    app.router.add_get("/ws", ws_signaling)

    # Static files
    if STATIC_DIR.is_dir():
        app.router.add_static('/static', STATIC_DIR, name='static')
    else:
        logger.warning("Static directory %s not found, serving API only", STATIC_DIR)

    logger.info("🎧 voxhub ready • WebSocket signaling on /ws")
    return app


def main():
    app = create_app()
    port = int(os.environ.get("PORT", 3000))
    host = os.environ.get("SERVER_HOST", "0.0.0.0")

    logger.info("🚀 Starting server on %s:%d", host, port)
    web.run_app(app, host=host, port=port)


if __name__ == "__main__":
    main()
