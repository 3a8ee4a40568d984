"""Dispatch 处理链 - 按固定顺序匹配的 (predicate, handler) 列表

第一个 predicate 为真的 handler 生效：

| # | 名称                | 匹配                                   | 结果                           |
|---|---------------------|----------------------------------------|--------------------------------|
| 1 | subagent_stop       | SubagentStop                           | 展示 + transcript 补充         |
| 2 | permission_prompt   | PermissionRequest（有 tool_name）      | deny 规则 → block 并展示；否则 allow 不展示 |
| 3 | question            | PreToolUse AskUserQuestion             | Question 队列，展示            |
| 4 | rule_match          | PreToolUse 有匹配规则                  | 按规则 allow / deny，展示      |
| 5 | safe_tool           | PreToolUse 无需授权                    | 显式 allow，展示               |
| 6 | permission_required | PreToolUse 其余                        | Permission 队列，展示          |
| 7 | default             | 其他                                   | 展示，超时自动 passthrough     |

safe_tool 只按工具名判定：Bash 一律视为 dangerous，即使命令本身只读。

handler 是纯函数：只读取事件与规则快照，返回 HandlerResult，
由 HookPipeline 统一执行副作用。
"""

from collections.abc import Callable
from dataclasses import dataclass

from ..hooks.decisions import (
    DecisionSource,
    PermissionAllow,
    PreToolAllow,
    PreToolDeny,
    RuntimeDecision,
)
from ..hooks.events import SubagentStopPayload
from ..hooks.runtime import RuntimeEvent
from ..policy.permission import is_permission_required
from ..policy.rules import HookRule, RuleAction, match_rule
from .queues import QueueKind

QUESTION_TOOL = "AskUserQuestion"


@dataclass(frozen=True)
class HandlerContext:
    """handler 输入"""

    event: RuntimeEvent
    rules: tuple[HookRule, ...] = ()

    @property
    def is_pre_tool(self) -> bool:
        return self.event.hook_name == "PreToolUse"


@dataclass(frozen=True)
class HandlerResult:
    """handler 输出

    Attributes:
        handler: 生效的 handler 名
        decision: 立即决策（None 表示等待人工或超时）
        surface: 是否映射到 feed
        record_decision: 立即决策是否生成决策类 feed 事件
        enqueue: 需要进入的队列
        enrich_path: 需要异步解析的 transcript 路径
    """

    handler: str
    decision: RuntimeDecision | None = None
    surface: bool = True
    record_decision: bool = True
    enqueue: QueueKind | None = None
    enrich_path: str | None = None


@dataclass(frozen=True)
class DispatchHandler:
    name: str
    predicate: Callable[[HandlerContext], bool]
    handle: Callable[[HandlerContext], HandlerResult]


# =============================================================================
# 各 handler
# =============================================================================


def _handle_subagent_stop(ctx: HandlerContext) -> HandlerResult:
    payload = ctx.event.payload
    path = payload.agent_transcript_path if isinstance(payload, SubagentStopPayload) else None
    return HandlerResult(handler="subagent_stop", enrich_path=path)


def _handle_permission_prompt(ctx: HandlerContext) -> HandlerResult:
    rule = match_rule(ctx.rules, ctx.event.tool_name or "")
    if rule is not None and rule.action == RuleAction.DENY:
        return HandlerResult(
            handler="permission_prompt",
            decision=RuntimeDecision.block(rule.block_reason, DecisionSource.RULE),
        )
    # 授权已在 PreToolUse 阶段处理，这里再展示会重复
    return HandlerResult(
        handler="permission_prompt",
        decision=RuntimeDecision.with_intent(PermissionAllow(), DecisionSource.RULE),
        surface=False,
    )


def _handle_question(ctx: HandlerContext) -> HandlerResult:
    return HandlerResult(handler="question", enqueue=QueueKind.QUESTION)


def _handle_rule_match(ctx: HandlerContext) -> HandlerResult:
    rule = match_rule(ctx.rules, ctx.event.tool_name or "")
    if rule is None:
        return _handle_default(ctx)
    if rule.action == RuleAction.DENY:
        intent = PreToolDeny(reason=rule.block_reason)
    else:
        intent = PreToolAllow()
    return HandlerResult(
        handler="rule_match",
        decision=RuntimeDecision.with_intent(intent, DecisionSource.RULE),
    )


def _handle_safe_tool(ctx: HandlerContext) -> HandlerResult:
    return HandlerResult(
        handler="safe_tool",
        decision=RuntimeDecision.with_intent(PreToolAllow(), DecisionSource.RULE),
        record_decision=False,
    )


def _handle_permission_required(ctx: HandlerContext) -> HandlerResult:
    return HandlerResult(handler="permission_required", enqueue=QueueKind.PERMISSION)


def _handle_default(ctx: HandlerContext) -> HandlerResult:
    return HandlerResult(handler="default")


DISPATCH_CHAIN: tuple[DispatchHandler, ...] = (
    DispatchHandler(
        "subagent_stop",
        lambda ctx: ctx.event.hook_name == "SubagentStop",
        _handle_subagent_stop,
    ),
    DispatchHandler(
        "permission_prompt",
        lambda ctx: ctx.event.hook_name == "PermissionRequest" and bool(ctx.event.tool_name),
        _handle_permission_prompt,
    ),
    DispatchHandler(
        "question",
        lambda ctx: ctx.is_pre_tool and ctx.event.tool_name == QUESTION_TOOL,
        _handle_question,
    ),
    DispatchHandler(
        "rule_match",
        lambda ctx: ctx.is_pre_tool and match_rule(ctx.rules, ctx.event.tool_name or "") is not None,
        _handle_rule_match,
    ),
    DispatchHandler(
        "safe_tool",
        lambda ctx: ctx.is_pre_tool
        and not is_permission_required(ctx.event.tool_name or "", ctx.rules),
        _handle_safe_tool,
    ),
    DispatchHandler(
        "permission_required",
        lambda ctx: ctx.is_pre_tool,
        _handle_permission_required,
    ),
    DispatchHandler("default", lambda ctx: True, _handle_default),
)


def select_handler(
    ctx: HandlerContext, chain: tuple[DispatchHandler, ...] = DISPATCH_CHAIN
) -> DispatchHandler:
    """返回第一个匹配的 handler（default 保证总有结果）"""
    for handler in chain:
        if handler.predicate(ctx):
            return handler
    return chain[-1]
