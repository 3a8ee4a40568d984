"""Core module - id and path utilities"""

from .ids import generate_request_id, short_id, socket_path

__all__ = [
    "generate_request_id",
    "short_id",
    "socket_path",
]
