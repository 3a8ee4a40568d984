"""Dispatch & Policy Pipeline

模块结构：
- handlers: DISPATCH_CHAIN, HandlerContext, HandlerResult
- dispatcher: HookPipeline 单写者管道
- queues: RequestQueue, QueueItem, QueueKind
- enrichment: TranscriptEnricher worker
- transcript: TranscriptSummary, parse_transcript_file
"""

from .dispatcher import HookPipeline, ResultTransport
from .enrichment import TranscriptEnricher
from .handlers import DISPATCH_CHAIN, DispatchHandler, HandlerContext, HandlerResult, select_handler
from .queues import QueueItem, QueueKind, RequestQueue
from .transcript import TranscriptSummary, parse_transcript_file

__all__ = [
    "HookPipeline",
    "ResultTransport",
    "TranscriptEnricher",
    "DISPATCH_CHAIN",
    "DispatchHandler",
    "HandlerContext",
    "HandlerResult",
    "select_handler",
    "QueueItem",
    "QueueKind",
    "RequestQueue",
    "TranscriptSummary",
    "parse_transcript_file",
]
