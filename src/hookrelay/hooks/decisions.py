"""决策模型与 wire 映射

层级职责：
- RuntimeDecision: UI / 规则 / 超时产生的语义决策
- Intent: 决策意图（封闭集合）
- map_decision_to_result: 语义决策 → host 可识别的回复 payload

host 专有的 JSON 输出结构只在 map_decision_to_result 中构造。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from .envelope import HookResultPayload, block_result, json_result, passthrough_result


class DecisionType(str, Enum):
    """决策类型"""

    JSON = "json"
    PASSTHROUGH = "passthrough"
    BLOCK = "block"


class DecisionSource(str, Enum):
    """决策来源"""

    USER = "user"
    RULE = "rule"
    TIMEOUT = "timeout"


# =============================================================================
# Intent - 决策意图
# =============================================================================


@dataclass(frozen=True)
class PermissionAllow:
    kind: ClassVar[str] = "permission_allow"


@dataclass(frozen=True)
class PermissionDeny:
    reason: str = "Denied"
    kind: ClassVar[str] = "permission_deny"


@dataclass(frozen=True)
class PreToolAllow:
    kind: ClassVar[str] = "pre_tool_allow"


@dataclass(frozen=True)
class PreToolDeny:
    reason: str = "Denied"
    kind: ClassVar[str] = "pre_tool_deny"


@dataclass(frozen=True)
class QuestionAnswer:
    answers: dict[str, str] = field(default_factory=dict)
    kind: ClassVar[str] = "question_answer"


@dataclass(frozen=True)
class StopBlock:
    reason: str = "Blocked"
    kind: ClassVar[str] = "stop_block"


Intent = PermissionAllow | PermissionDeny | PreToolAllow | PreToolDeny | QuestionAnswer | StopBlock

INTENT_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (PermissionAllow, PermissionDeny, PreToolAllow, PreToolDeny, QuestionAnswer, StopBlock)
}


@dataclass(frozen=True)
class RuntimeDecision:
    """语义决策

    Attributes:
        type: json / passthrough / block
        source: user / rule / timeout
        intent: json 决策的意图（可选）
        reason: block 决策的文本
        data: 无 intent 的 json 决策直接输出的数据
    """

    type: DecisionType
    source: DecisionSource
    intent: Intent | None = None
    reason: str | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def passthrough(cls, source: DecisionSource = DecisionSource.TIMEOUT) -> "RuntimeDecision":
        return cls(type=DecisionType.PASSTHROUGH, source=source)

    @classmethod
    def block(cls, reason: str, source: DecisionSource = DecisionSource.RULE) -> "RuntimeDecision":
        return cls(type=DecisionType.BLOCK, source=source, reason=reason)

    @classmethod
    def with_intent(cls, intent: Intent, source: DecisionSource) -> "RuntimeDecision":
        return cls(type=DecisionType.JSON, source=source, intent=intent)

    @property
    def is_denial(self) -> bool:
        """是否为拒绝 / 阻断类决策（计入 run.blocks）"""
        if self.type == DecisionType.BLOCK:
            return True
        return isinstance(self.intent, (PermissionDeny, PreToolDeny, StopBlock))


def map_decision_to_result(decision: RuntimeDecision) -> HookResultPayload:
    """语义决策 → 回复 payload

    Args:
        decision: 语义决策

    Returns:
        HookResultPayload
    """
    if decision.type == DecisionType.PASSTHROUGH:
        return passthrough_result()

    if decision.type == DecisionType.BLOCK:
        return block_result(decision.reason or "Blocked")

    match decision.intent:
        case None:
            return json_result(decision.data or {})
        case PermissionAllow():
            return json_result(
                {
                    "hookSpecificOutput": {
                        "hookEventName": "PermissionRequest",
                        "decision": {"behavior": "allow"},
                    }
                }
            )
        case PermissionDeny(reason=reason):
            return json_result(
                {
                    "hookSpecificOutput": {
                        "hookEventName": "PermissionRequest",
                        "decision": {"behavior": "deny", "message": reason},
                    }
                }
            )
        case QuestionAnswer(answers=answers):
            formatted = "\n".join(f"Q: {q}\nA: {a}" for q, a in answers.items())
            return json_result(
                {
                    "hookSpecificOutput": {
                        "hookEventName": "PreToolUse",
                        "permissionDecision": "allow",
                        "updatedInput": {"answers": answers},
                        "additionalContext": f"User answered via hookrelay:\n{formatted}",
                    }
                }
            )
        case PreToolAllow():
            return json_result(
                {
                    "hookSpecificOutput": {
                        "hookEventName": "PreToolUse",
                        "permissionDecision": "allow",
                    }
                }
            )
        case PreToolDeny(reason=reason):
            return json_result(
                {
                    "hookSpecificOutput": {
                        "hookEventName": "PreToolUse",
                        "permissionDecision": "deny",
                        "permissionDecisionReason": reason,
                    }
                }
            )
        case StopBlock(reason=reason):
            return json_result({"decision": "block", "reason": reason})

    return passthrough_result()
