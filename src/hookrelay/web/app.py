"""FastAPI 应用初始化"""

import asyncio
import logging

import uvicorn

from hookrelay import config
from hookrelay.pipeline.dispatcher import HookPipeline
from hookrelay.runtime import bootstrap
from hookrelay.telemetry import setup_logging
from hookrelay.web.server import WebServer

logger = logging.getLogger(__name__)


def create_app(pipeline: HookPipeline) -> WebServer:
    """创建 Web 应用"""
    return WebServer(pipeline)


async def start_server():
    """启动 socket 接收器与 HTTP API"""
    components = bootstrap()
    server = create_app(components.pipeline)

    await components.start()
    print(f"[HookSystem] Listening on {components.receiver.socket_path}")

    uvicorn_config = uvicorn.Config(
        server.app, host=config.WEB_HOST, port=config.WEB_PORT, log_level=config.LOG_LEVEL.lower()
    )
    uvicorn_server = uvicorn.Server(uvicorn_config)

    print(f"hookrelay API starting at http://{config.WEB_HOST}:{config.WEB_PORT}")

    try:
        await uvicorn_server.serve()
    finally:
        await components.stop()


def main():
    """入口函数"""
    setup_logging(config.LOG_LEVEL)
    try:
        asyncio.run(start_server())
    except KeyboardInterrupt:
        print("\nServer stopped")
