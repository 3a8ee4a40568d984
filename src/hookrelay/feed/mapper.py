"""FeedMapper - RuntimeEvent / 决策 → FeedEvent

层级职责：
- 维护 Session / Run 状态与 run 内 seq
- 维护 Actor 注册表
- 维护 tool_use 与决策关联索引
- 为每个 hook 产出一个或多个 FeedEvent（每个事件消耗一个 seq）

Run 规则：
- 隐式创建：任意需要 run 的事件到达且没有 open run
- 显式创建：UserPromptSubmit、SessionStart(source=resume)，先把 open run 以 completed 关闭
- SessionEnd：先 run.end，再 session.end
- run 编号在 mapper 生命周期内单调递增，不随 session 切换重置；seq 只在开 run 时归零

FeedMapper 不是线程安全的，调用方（HookPipeline）保证串行调用。
"""

from typing import Any

from ..config import PROMPT_PREVIEW_LEN
from ..core.ids import (
    ROOT_ACTOR_ID,
    SYSTEM_ACTOR_ID,
    USER_ACTOR_ID,
    make_event_id,
    make_run_id,
    now_ms,
    subagent_actor_id,
)
from ..hooks.decisions import (
    DecisionSource,
    DecisionType,
    PermissionAllow,
    PermissionDeny,
    PreToolAllow,
    PreToolDeny,
    QuestionAnswer,
    RuntimeDecision,
    StopBlock,
)
from ..hooks.events import (
    NotificationPayload,
    PermissionRequestPayload,
    PostToolUseFailurePayload,
    PostToolUsePayload,
    PreCompactPayload,
    PreToolUsePayload,
    SessionEndPayload,
    SessionStartPayload,
    SetupPayload,
    StopPayload,
    SubagentStartPayload,
    SubagentStopPayload,
    UnknownHookPayload,
    UserPromptSubmitPayload,
)
from ..hooks.runtime import RuntimeEvent
from ..telemetry import get_logger
from .correlation import DecisionCorrelator, ToolUseIndex
from .entities import Actor, ActorRegistry, Run, RunStatus, Session
from .titles import generate_title
from .types import FeedCause, FeedEvent, FeedKind, FeedLevel, RunTrigger

logger = get_logger(__name__)


class FeedMapper:
    """Feed 映射器

    Attributes:
        actors: Actor 注册表
    """

    def __init__(self):
        self._session: Session | None = None
        self._scope_id: str | None = None  # run_id 前缀（当前 session id）
        self._run: Run | None = None  # 最近一个 run（可能已关闭）
        self._run_number = 0
        self._seq = 0
        self.actors = ActorRegistry()
        self._tool_index = ToolUseIndex()
        self._correlator = DecisionCorrelator()

    # === 查询 ===

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def current_run(self) -> Run | None:
        """当前 open run（没有时返回 None）"""
        if self._run is not None and self._run.is_open:
            return self._run
        return None

    def get_actors(self) -> list[Actor]:
        return self.actors.all()

    def is_awaiting_decision(self, request_id: str) -> bool:
        return request_id in self._correlator

    # === 事件映射 ===

    def map_event(self, event: RuntimeEvent) -> list[FeedEvent]:
        """把一个 RuntimeEvent 映射为 FeedEvent 列表

        Args:
            event: 已校验的事件

        Returns:
            按发出顺序排列的 FeedEvent 列表
        """
        if self._scope_id is None:
            self._scope_id = event.session_id

        results: list[FeedEvent] = []
        payload = event.payload

        match payload:
            case SessionStartPayload():
                results.extend(self._start_session(event, payload))
                if payload.source == "resume":
                    results.extend(self._open_run(event, "resume"))
                results.append(
                    self._emit(
                        FeedKind.SESSION_START,
                        FeedLevel.INFO,
                        SYSTEM_ACTOR_ID,
                        {
                            "source": payload.source,
                            "model": payload.model,
                            "agent_type": payload.agent_type,
                        },
                        event,
                    )
                )

            case SessionEndPayload():
                if self.current_run is not None:
                    results.append(self._close_run(event, RunStatus.COMPLETED))
                results.append(
                    self._emit(
                        FeedKind.SESSION_END,
                        FeedLevel.INFO,
                        SYSTEM_ACTOR_ID,
                        {"reason": payload.reason},
                        event,
                    )
                )
                if self._session is not None:
                    self._session.ended_at = event.timestamp

            case UserPromptSubmitPayload():
                preview = payload.prompt[:PROMPT_PREVIEW_LEN]
                results.extend(self._open_run(event, "user_prompt_submit", preview))
                results.append(
                    self._emit(
                        FeedKind.USER_PROMPT,
                        FeedLevel.INFO,
                        USER_ACTOR_ID,
                        {
                            "prompt": payload.prompt,
                            "cwd": event.context.cwd,
                            "permission_mode": event.context.permission_mode,
                        },
                        event,
                    )
                )

            case PreToolUsePayload():
                results.extend(self._ensure_run(event))
                self._count("tool_uses")
                fe = self._emit(
                    FeedKind.TOOL_PRE,
                    FeedLevel.INFO,
                    self._tool_actor(event),
                    self._tool_data(event),
                    event,
                    tool_use_id=event.tool_use_id,
                )
                if event.tool_use_id:
                    self._tool_index.record(event.tool_use_id, fe.event_id)
                results.append(fe)

            case PostToolUsePayload():
                results.extend(self._ensure_run(event))
                results.append(
                    self._emit(
                        FeedKind.TOOL_POST,
                        FeedLevel.INFO,
                        self._tool_actor(event),
                        {**self._tool_data(event), "tool_response": payload.tool_response},
                        event,
                        tool_use_id=event.tool_use_id,
                        parent_event_id=self._tool_index.resolve(event.tool_use_id),
                    )
                )

            case PostToolUseFailurePayload():
                results.extend(self._ensure_run(event))
                self._count("tool_failures")
                results.append(
                    self._emit(
                        FeedKind.TOOL_FAILURE,
                        FeedLevel.ERROR,
                        self._tool_actor(event),
                        {
                            **self._tool_data(event),
                            "error": payload.error,
                            "is_interrupt": payload.is_interrupt,
                        },
                        event,
                        tool_use_id=event.tool_use_id,
                        parent_event_id=self._tool_index.resolve(event.tool_use_id),
                    )
                )

            case PermissionRequestPayload():
                results.extend(self._ensure_run(event))
                self._count("permission_requests")
                results.append(
                    self._emit(
                        FeedKind.PERMISSION_REQUEST,
                        FeedLevel.WARN,
                        SYSTEM_ACTOR_ID,
                        {
                            **self._tool_data(event),
                            "permission_suggestions": payload.permission_suggestions,
                        },
                        event,
                        tool_use_id=event.tool_use_id,
                    )
                )

            case StopPayload():
                results.extend(self._ensure_run(event))
                results.append(
                    self._emit(
                        FeedKind.STOP_REQUEST,
                        FeedLevel.WARN,
                        SYSTEM_ACTOR_ID,
                        {
                            "stop_hook_active": payload.stop_hook_active,
                            "scope": "subagent" if payload.agent_id else "root",
                            "agent_id": payload.agent_id,
                            "agent_type": payload.agent_type,
                        },
                        event,
                    )
                )
                if payload.last_assistant_message:
                    results.append(
                        self._agent_message(event, payload.last_assistant_message, "root", ROOT_ACTOR_ID)
                    )

            case SubagentStartPayload():
                results.extend(self._ensure_run(event))
                if payload.agent_id:
                    self.actors.ensure_subagent(payload.agent_id, payload.agent_type)
                    run = self.current_run
                    if run is not None and payload.agent_id not in run.actors.subagent_ids:
                        run.actors.subagent_ids.append(payload.agent_id)
                results.append(
                    self._emit(
                        FeedKind.SUBAGENT_START,
                        FeedLevel.INFO,
                        ROOT_ACTOR_ID,
                        {"agent_id": payload.agent_id or "", "agent_type": payload.agent_type or ""},
                        event,
                    )
                )

            case SubagentStopPayload():
                results.extend(self._ensure_run(event))
                if payload.agent_id:
                    self.actors.ensure_subagent(payload.agent_id, payload.agent_type)
                actor_id = subagent_actor_id(payload.agent_id or "unknown")
                results.append(
                    self._emit(
                        FeedKind.SUBAGENT_STOP,
                        FeedLevel.INFO,
                        actor_id,
                        {
                            "agent_id": payload.agent_id or "",
                            "agent_type": payload.agent_type or "",
                            "stop_hook_active": payload.stop_hook_active,
                            "agent_transcript_path": payload.agent_transcript_path,
                        },
                        event,
                    )
                )
                if payload.last_assistant_message:
                    results.append(
                        self._agent_message(event, payload.last_assistant_message, "subagent", actor_id)
                    )

            case NotificationPayload():
                results.extend(self._ensure_run(event))
                results.append(
                    self._emit(
                        FeedKind.NOTIFICATION,
                        FeedLevel.INFO,
                        SYSTEM_ACTOR_ID,
                        {
                            "message": payload.message,
                            "title": payload.title,
                            "notification_type": payload.notification_type,
                        },
                        event,
                    )
                )

            case PreCompactPayload():
                results.extend(self._ensure_run(event))
                results.append(
                    self._emit(
                        FeedKind.COMPACT_PRE,
                        FeedLevel.INFO,
                        SYSTEM_ACTOR_ID,
                        {"trigger": payload.trigger, "custom_instructions": payload.custom_instructions},
                        event,
                    )
                )

            case SetupPayload():
                results.extend(self._ensure_run(event))
                results.append(
                    self._emit(
                        FeedKind.SETUP, FeedLevel.INFO, SYSTEM_ACTOR_ID, {"trigger": payload.trigger}, event
                    )
                )

            case UnknownHookPayload():
                results.extend(self._ensure_run(event))
                results.append(
                    self._emit(
                        FeedKind.UNKNOWN_HOOK,
                        FeedLevel.DEBUG,
                        SYSTEM_ACTOR_ID,
                        {"hook_event_name": event.hook_name, "payload": event.raw},
                        event,
                    )
                )

        return results

    # === 决策映射 ===

    def map_decision(self, request_id: str, decision: RuntimeDecision) -> FeedEvent | None:
        """把决策映射为 permission.decision / stop.decision

        Args:
            request_id: 原始请求标识
            decision: 决策

        Returns:
            决策事件；request_id 未知或已关联过时返回 None
        """
        entry = self._correlator.resolve(request_id)
        if entry is None:
            return None

        if entry.kind == FeedKind.STOP_REQUEST:
            kind = FeedKind.STOP_DECISION
            data = self._stop_decision_data(decision)
        else:
            kind = FeedKind.PERMISSION_DECISION
            data = self._permission_decision_data(decision)

        if decision.is_denial:
            self._count("blocks")

        self._seq += 1
        run_id = self._run_label()
        return FeedEvent(
            event_id=make_event_id(run_id, self._seq),
            seq=self._seq,
            ts=now_ms(),
            session_id=self._scope_id or "unknown",
            run_id=run_id,
            kind=kind,
            level=FeedLevel.INFO,
            actor_id=USER_ACTOR_ID if decision.source == DecisionSource.USER else SYSTEM_ACTOR_ID,
            cause=FeedCause(hook_request_id=request_id, parent_event_id=entry.event_id),
            title=generate_title(kind, data),
            data=data,
        )

    def forget_request(self, request_id: str) -> bool:
        """丢弃请求的决策关联（已由策略静默放行时使用）"""
        return self._correlator.resolve(request_id) is not None

    @staticmethod
    def _permission_decision_data(decision: RuntimeDecision) -> dict[str, Any]:
        if decision.source == DecisionSource.TIMEOUT:
            return {"decision_type": "no_opinion", "reason": "timeout"}
        if decision.type == DecisionType.PASSTHROUGH:
            return {"decision_type": "no_opinion", "reason": decision.source.value}
        if decision.type == DecisionType.BLOCK:
            return {"decision_type": "deny", "message": decision.reason or "Blocked"}
        match decision.intent:
            case PermissionAllow() | PreToolAllow():
                return {"decision_type": "allow"}
            case QuestionAnswer():
                return {"decision_type": "allow", "reason": "answered"}
            case PermissionDeny(reason=reason) | PreToolDeny(reason=reason):
                return {"decision_type": "deny", "message": reason or "Denied"}
        return {"decision_type": "no_opinion", "reason": "unknown"}

    @staticmethod
    def _stop_decision_data(decision: RuntimeDecision) -> dict[str, Any]:
        if decision.source == DecisionSource.TIMEOUT or decision.type == DecisionType.PASSTHROUGH:
            return {"decision_type": "no_opinion", "reason": decision.source.value}
        if decision.type == DecisionType.BLOCK:
            return {"decision_type": "block", "reason": decision.reason or "Blocked"}
        if isinstance(decision.intent, StopBlock):
            return {"decision_type": "block", "reason": decision.intent.reason}
        return {"decision_type": "allow", "reason": decision.reason}

    # === Session / Run ===

    def _start_session(self, event: RuntimeEvent, payload: SessionStartPayload) -> list[FeedEvent]:
        results: list[FeedEvent] = []
        if self._scope_id is not None and self._scope_id != event.session_id:
            # 新会话：关闭上一会话遗留的 run
            if self.current_run is not None:
                results.append(self._close_run(event, RunStatus.COMPLETED))
            self._run = None
        self._scope_id = event.session_id
        self._session = Session(
            session_id=event.session_id,
            started_at=event.timestamp,
            source=payload.source,
            model=payload.model,
            agent_type=payload.agent_type,
        )
        return results

    def _ensure_run(self, event: RuntimeEvent) -> list[FeedEvent]:
        if self.current_run is not None:
            return []
        return self._open_run(event, "other")

    def _open_run(
        self,
        event: RuntimeEvent,
        trigger_type: str,
        prompt_preview: str | None = None,
    ) -> list[FeedEvent]:
        results: list[FeedEvent] = []
        if self.current_run is not None:
            results.append(self._close_run(event, RunStatus.COMPLETED))

        self._run_number += 1
        self._seq = 0
        self._tool_index.clear()

        trigger = RunTrigger(type=trigger_type, prompt_preview=prompt_preview, request_id=event.id)
        self._run = Run(
            run_id=make_run_id(self._scope_id or event.session_id, self._run_number),
            session_id=event.session_id,
            started_at=event.timestamp,
            trigger=trigger,
        )
        logger.debug(f"[Feed] Run opened: {self._run.run_id} ({trigger_type})")

        results.append(
            self._emit(
                FeedKind.RUN_START,
                FeedLevel.INFO,
                SYSTEM_ACTOR_ID,
                {"trigger": {"type": trigger_type, "prompt_preview": prompt_preview}},
                event,
            )
        )
        return results

    def _close_run(self, event: RuntimeEvent, status: RunStatus) -> FeedEvent:
        run = self._run
        assert run is not None
        run.status = status
        run.ended_at = event.timestamp
        logger.debug(f"[Feed] Run closed: {run.run_id} ({status.value})")
        return self._emit(
            FeedKind.RUN_END,
            FeedLevel.INFO,
            SYSTEM_ACTOR_ID,
            {"status": status.value, "counters": dict(run.counters)},
            event,
        )

    def _run_label(self) -> str:
        if self._run is not None:
            return self._run.run_id
        return make_run_id(self._scope_id or "unknown", self._run_number)

    def _count(self, counter: str) -> None:
        run = self.current_run
        if run is not None:
            run.counters[counter] += 1

    # === 构造 ===

    def _emit(
        self,
        kind: FeedKind,
        level: FeedLevel,
        actor_id: str,
        data: dict[str, Any],
        event: RuntimeEvent,
        *,
        tool_use_id: str | None = None,
        parent_event_id: str | None = None,
    ) -> FeedEvent:
        self._seq += 1
        run_id = self._run_label()
        fe = FeedEvent(
            event_id=make_event_id(run_id, self._seq),
            seq=self._seq,
            ts=event.timestamp,
            session_id=event.session_id,
            run_id=run_id,
            kind=kind,
            level=level,
            actor_id=actor_id,
            cause=FeedCause(
                hook_request_id=event.id,
                tool_use_id=tool_use_id,
                parent_event_id=parent_event_id,
                transcript_path=event.context.transcript_path,
            ),
            title=generate_title(kind, data),
            data=data,
            raw=event.raw,
        )
        self._correlator.record(event.id, fe.event_id, kind)
        return fe

    def _agent_message(self, event: RuntimeEvent, message: str, scope: str, actor_id: str) -> FeedEvent:
        return self._emit(
            FeedKind.AGENT_MESSAGE,
            FeedLevel.INFO,
            actor_id,
            {"message": message, "source": "hook", "scope": scope},
            event,
        )

    def _tool_actor(self, event: RuntimeEvent) -> str:
        if event.agent_id:
            self.actors.ensure_subagent(event.agent_id, event.agent_type)
            return subagent_actor_id(event.agent_id)
        return ROOT_ACTOR_ID

    @staticmethod
    def _tool_data(event: RuntimeEvent) -> dict[str, Any]:
        return {
            "tool_name": event.tool_name or "",
            "tool_input": event.tool_input,
            "tool_use_id": event.tool_use_id,
        }
