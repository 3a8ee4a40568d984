"""Web 模块 - 下游 HTTP API"""

from .app import create_app
from .server import RespondRequest, WebServer

__all__ = [
    "create_app",
    "WebServer",
    "RespondRequest",
]
