"""Hook 系统 - 接收 host 的生命周期事件

模块结构：
- envelope: 请求 / 回复 envelope 与 NDJSON 编解码
- events: 按 hook 名区分的 payload 类型
- runtime: RuntimeEvent, InteractionHints
- decisions: RuntimeDecision, Intent, map_decision_to_result
- receiver: HookReceiver unix socket 服务端
- forwarder: host 调用的客户端（hookrelay-forward）
"""

from .decisions import DecisionSource, DecisionType, RuntimeDecision, map_decision_to_result
from .envelope import EnvelopeError, HookEventEnvelope, HookResultEnvelope, HookResultPayload
from .events import HookPayload, parse_hook_payload
from .runtime import InteractionHints, RuntimeEvent, get_interaction_hints

__all__ = [
    "HookEventEnvelope",
    "HookResultEnvelope",
    "HookResultPayload",
    "EnvelopeError",
    "HookPayload",
    "parse_hook_payload",
    "RuntimeEvent",
    "InteractionHints",
    "get_interaction_hints",
    "RuntimeDecision",
    "DecisionType",
    "DecisionSource",
    "map_decision_to_result",
]
