"""Runtime module - Bootstrap and lifecycle management"""

from .bootstrap import (
    RuntimeComponents,
    bootstrap,
)

__all__ = [
    "bootstrap",
    "RuntimeComponents",
]
