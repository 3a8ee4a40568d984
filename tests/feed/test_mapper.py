"""FeedMapper 测试"""

from conftest import make_event

from hookrelay.feed.entities import RunStatus
from hookrelay.feed.mapper import FeedMapper
from hookrelay.feed.types import FeedKind, FeedLevel
from hookrelay.hooks.decisions import (
    DecisionSource,
    PermissionAllow,
    PreToolDeny,
    QuestionAnswer,
    RuntimeDecision,
    StopBlock,
)


def kinds(events) -> list[FeedKind]:
    return [e.kind for e in events]


class TestSessionAndRuns:
    """Session / Run 生命周期"""

    def test_session_start_then_tool_opens_implicit_run(self):
        """SessionStart 后的第一个工具事件隐式创建 run"""
        mapper = FeedMapper()
        events = mapper.map_event(make_event("SessionStart", source="startup"))
        events += mapper.map_event(make_event("PreToolUse", tool_name="Bash", tool_input={"command": "ls"}))

        assert kinds(events) == [FeedKind.SESSION_START, FeedKind.RUN_START, FeedKind.TOOL_PRE]
        assert events[1].data["trigger"]["type"] == "other"
        assert mapper.current_run.run_id == "sess-1:R1"

    def test_session_start_before_any_run(self):
        mapper = FeedMapper()
        fe = mapper.map_event(make_event("SessionStart", model="opus"))[0]
        assert fe.run_id == "sess-1:R0"
        assert fe.seq == 1
        assert fe.data["model"] == "opus"
        assert mapper.session.session_id == "sess-1"

    def test_resume_opens_run(self):
        mapper = FeedMapper()
        events = mapper.map_event(make_event("SessionStart", source="resume"))
        assert kinds(events) == [FeedKind.RUN_START, FeedKind.SESSION_START]
        assert events[0].data["trigger"]["type"] == "resume"
        assert mapper.current_run is not None

    def test_prompt_opens_run_with_preview(self):
        mapper = FeedMapper()
        prompt = "x" * 200
        events = mapper.map_event(make_event("UserPromptSubmit", prompt=prompt))
        assert kinds(events) == [FeedKind.RUN_START, FeedKind.USER_PROMPT]
        assert events[0].data["trigger"]["prompt_preview"] == "x" * 80
        assert events[1].actor_id == "user"
        assert events[1].data["prompt"] == prompt

    def test_second_prompt_closes_previous_run(self):
        mapper = FeedMapper()
        mapper.map_event(make_event("UserPromptSubmit", prompt="one"))
        first_run = mapper.current_run
        events = mapper.map_event(make_event("UserPromptSubmit", prompt="two"))

        assert kinds(events) == [FeedKind.RUN_END, FeedKind.RUN_START, FeedKind.USER_PROMPT]
        assert events[0].run_id == "sess-1:R1"
        assert events[0].data["status"] == "completed"
        assert first_run.status == RunStatus.COMPLETED
        assert events[1].run_id == "sess-1:R2"
        assert events[1].seq == 1

    def test_session_end_closes_run_first(self):
        mapper = FeedMapper()
        mapper.map_event(make_event("SessionStart"))
        mapper.map_event(make_event("UserPromptSubmit", prompt="hi"))
        events = mapper.map_event(make_event("SessionEnd", reason="logout"))
        assert kinds(events) == [FeedKind.RUN_END, FeedKind.SESSION_END]
        assert events[1].data["reason"] == "logout"
        assert mapper.current_run is None
        assert mapper.session.ended_at is not None

    def test_new_session_closes_run_and_keeps_counting(self):
        mapper = FeedMapper()
        mapper.map_event(make_event("UserPromptSubmit", prompt="hi"))
        events = mapper.map_event(make_event("SessionStart", session_id="sess-2"))
        assert kinds(events) == [FeedKind.RUN_END, FeedKind.SESSION_START]
        assert events[0].run_id == "sess-1:R1"
        assert events[1].session_id == "sess-2"
        assert events[1].run_id == "sess-2:R1"
        assert events[1].seq == events[0].seq + 1
        next_run = mapper.map_event(make_event("UserPromptSubmit", session_id="sess-2", prompt="x"))
        assert next_run[0].run_id == "sess-2:R2"
        assert next_run[0].seq == 1

    def test_returning_session_gets_fresh_run_ids(self):
        """A → B → A（resume）不会复用 run_id / event_id"""
        mapper = FeedMapper()
        events = []
        for sid in ("A", "B", "A"):
            events += mapper.map_event(make_event("SessionStart", session_id=sid, source="resume"))
            events += mapper.map_event(
                make_event("PreToolUse", session_id=sid, tool_name="Read", tool_input={}, tool_use_id=f"t-{len(events)}")
            )

        run_ids = [e.run_id for e in events if e.kind == FeedKind.RUN_START]
        assert run_ids == ["A:R1", "B:R2", "A:R3"]
        event_ids = [e.event_id for e in events]
        assert len(set(event_ids)) == len(event_ids)


class TestSequencing:
    """seq 与 event_id"""

    def test_seq_increments_by_one_within_run(self):
        mapper = FeedMapper()
        events = mapper.map_event(make_event("UserPromptSubmit", prompt="go"))
        for i in range(5):
            events += mapper.map_event(
                make_event("PreToolUse", tool_name="Read", tool_input={}, tool_use_id=f"t{i}")
            )
            events += mapper.map_event(
                make_event("PostToolUse", tool_name="Read", tool_input={}, tool_use_id=f"t{i}")
            )
        events += mapper.map_event(make_event("Notification", message="done"))

        assert [e.seq for e in events] == list(range(1, len(events) + 1))
        assert all(e.event_id == f"{e.run_id}:E{e.seq}" for e in events)
        assert len({e.event_id for e in events}) == len(events)

    def test_ts_from_hook(self):
        mapper = FeedMapper()
        event = make_event("Notification", message="x")
        fe = mapper.map_event(event)[-1]
        assert fe.ts == event.timestamp
        assert fe.cause.hook_request_id == event.id


class TestToolEvents:
    """工具事件"""

    def test_post_links_to_pre(self):
        """post / failure 事件的 parent_event_id 指向 tool.pre"""
        mapper = FeedMapper()
        pre = mapper.map_event(make_event("PreToolUse", tool_name="Read", tool_input={}, tool_use_id="t1"))[-1]
        post = mapper.map_event(make_event("PostToolUse", tool_name="Read", tool_input={}, tool_use_id="t1"))[-1]
        assert post.kind == FeedKind.TOOL_POST
        assert post.cause.parent_event_id == pre.event_id
        assert post.cause.tool_use_id == "t1"

    def test_failure_links_to_pre(self):
        mapper = FeedMapper()
        pre = mapper.map_event(make_event("PreToolUse", tool_name="Bash", tool_input={}, tool_use_id="t1"))[-1]
        failure = mapper.map_event(
            make_event("PostToolUseFailure", tool_name="Bash", tool_input={}, tool_use_id="t1", error="boom")
        )[-1]
        assert failure.level == FeedLevel.ERROR
        assert failure.data["error"] == "boom"
        assert failure.cause.parent_event_id == pre.event_id
        assert mapper.current_run.counters["tool_failures"] == 1

    def test_post_without_pre_has_no_parent(self):
        mapper = FeedMapper()
        post = mapper.map_event(make_event("PostToolUse", tool_name="Read", tool_input={}, tool_use_id="zz"))[-1]
        assert post.cause.parent_event_id is None

    def test_counters(self):
        mapper = FeedMapper()
        mapper.map_event(make_event("PreToolUse", tool_name="Read", tool_input={}))
        mapper.map_event(make_event("PreToolUse", tool_name="Grep", tool_input={}))
        mapper.map_event(make_event("PermissionRequest", tool_name="Bash", tool_input={}))
        counters = mapper.current_run.counters
        assert counters["tool_uses"] == 2
        assert counters["permission_requests"] == 1

    def test_subagent_tool_actor(self):
        mapper = FeedMapper()
        fe = mapper.map_event(
            make_event("PreToolUse", tool_name="Read", tool_input={}, agent_id="a1", agent_type="explore")
        )[-1]
        assert fe.actor_id == "subagent:a1"
        assert mapper.actors.get("subagent:a1").display_name == "explore"

    def test_root_tool_actor(self):
        mapper = FeedMapper()
        fe = mapper.map_event(make_event("PreToolUse", tool_name="Read", tool_input={}))[-1]
        assert fe.actor_id == "agent:root"

    def test_permission_request(self):
        mapper = FeedMapper()
        fe = mapper.map_event(
            make_event("PermissionRequest", tool_name="Bash", tool_input={"command": "rm x"})
        )[-1]
        assert fe.kind == FeedKind.PERMISSION_REQUEST
        assert fe.level == FeedLevel.WARN
        assert fe.actor_id == "system"
        assert fe.title == "⚠ Permission: Bash"


class TestStopAndSubagents:
    """Stop / subagent 事件"""

    def test_stop_with_message(self):
        mapper = FeedMapper()
        events = mapper.map_event(make_event("Stop", last_assistant_message="All done"))
        assert kinds(events) == [FeedKind.RUN_START, FeedKind.STOP_REQUEST, FeedKind.AGENT_MESSAGE]
        assert events[1].data["scope"] == "root"
        assert events[2].data == {"message": "All done", "source": "hook", "scope": "root"}
        assert events[2].actor_id == "agent:root"

    def test_subagent_lifecycle(self):
        mapper = FeedMapper()
        mapper.map_event(make_event("UserPromptSubmit", prompt="go"))
        start = mapper.map_event(make_event("SubagentStart", agent_id="a1", agent_type="explore"))[-1]
        stop_events = mapper.map_event(
            make_event("SubagentStop", agent_id="a1", agent_type="explore", last_assistant_message="found it")
        )

        assert start.kind == FeedKind.SUBAGENT_START
        assert start.actor_id == "agent:root"
        assert mapper.current_run.actors.subagent_ids == ["a1"]
        assert kinds(stop_events) == [FeedKind.SUBAGENT_STOP, FeedKind.AGENT_MESSAGE]
        assert stop_events[0].actor_id == "subagent:a1"
        assert stop_events[1].data["scope"] == "subagent"
        assert stop_events[1].title == "💬 Subagent response"

    def test_subagent_stop_without_id(self):
        mapper = FeedMapper()
        fe = mapper.map_event(make_event("SubagentStop"))[-1]
        assert fe.actor_id == "subagent:unknown"

    def test_actor_registration_idempotent(self):
        mapper = FeedMapper()
        before = len(mapper.get_actors())
        for _ in range(3):
            mapper.map_event(make_event("SubagentStart", agent_id="a1", agent_type="explore"))
        assert len(mapper.get_actors()) == before + 1


class TestOtherEvents:
    """其他事件"""

    def test_unknown_hook(self):
        mapper = FeedMapper()
        fe = mapper.map_event(make_event("FutureHook", foo="bar"))[-1]
        assert fe.kind == FeedKind.UNKNOWN_HOOK
        assert fe.level == FeedLevel.DEBUG
        assert fe.data["hook_event_name"] == "FutureHook"
        assert fe.data["payload"]["foo"] == "bar"

    def test_notification(self):
        mapper = FeedMapper()
        fe = mapper.map_event(make_event("Notification", message="Waiting for input", title="Claude"))[-1]
        assert fe.kind == FeedKind.NOTIFICATION
        assert fe.title == "Waiting for input"

    def test_compact_and_setup(self):
        mapper = FeedMapper()
        compact = mapper.map_event(make_event("PreCompact", trigger="manual"))[-1]
        setup = mapper.map_event(make_event("Setup"))[-1]
        assert compact.kind == FeedKind.COMPACT_PRE
        assert compact.data["trigger"] == "manual"
        assert setup.kind == FeedKind.SETUP
        assert setup.data["trigger"] == "init"


class TestDecisions:
    """决策映射"""

    def test_unknown_request_returns_none(self):
        mapper = FeedMapper()
        assert mapper.map_decision("nope", RuntimeDecision.passthrough()) is None

    def test_permission_allow(self):
        mapper = FeedMapper()
        event = make_event("PermissionRequest", tool_name="Bash", tool_input={})
        request = mapper.map_event(event)[-1]
        fe = mapper.map_decision(event.id, RuntimeDecision.with_intent(PermissionAllow(), DecisionSource.USER))

        assert fe.kind == FeedKind.PERMISSION_DECISION
        assert fe.data == {"decision_type": "allow"}
        assert fe.actor_id == "user"
        assert fe.cause.parent_event_id == request.event_id
        assert fe.cause.hook_request_id == event.id
        assert fe.seq == request.seq + 1
        assert fe.title == "✓ Allowed"

    def test_decision_only_once(self):
        mapper = FeedMapper()
        event = make_event("PreToolUse", tool_name="Write", tool_input={})
        mapper.map_event(event)
        assert mapper.is_awaiting_decision(event.id)
        assert mapper.map_decision(event.id, RuntimeDecision.passthrough()) is not None
        assert mapper.map_decision(event.id, RuntimeDecision.passthrough()) is None

    def test_non_decision_event_not_correlated(self):
        mapper = FeedMapper()
        event = make_event("Notification", message="x")
        mapper.map_event(event)
        assert mapper.map_decision(event.id, RuntimeDecision.passthrough()) is None

    def test_timeout_is_no_opinion(self):
        mapper = FeedMapper()
        event = make_event("PreToolUse", tool_name="Write", tool_input={})
        mapper.map_event(event)
        fe = mapper.map_decision(event.id, RuntimeDecision.passthrough(DecisionSource.TIMEOUT))
        assert fe.data == {"decision_type": "no_opinion", "reason": "timeout"}
        assert fe.actor_id == "system"

    def test_deny_counts_block(self):
        mapper = FeedMapper()
        event = make_event("PreToolUse", tool_name="Bash", tool_input={})
        mapper.map_event(event)
        fe = mapper.map_decision(event.id, RuntimeDecision.with_intent(PreToolDeny("no"), DecisionSource.RULE))
        assert fe.data == {"decision_type": "deny", "message": "no"}
        assert mapper.current_run.counters["blocks"] == 1

    def test_block_decision_maps_to_deny(self):
        mapper = FeedMapper()
        event = make_event("PermissionRequest", tool_name="Bash", tool_input={})
        mapper.map_event(event)
        fe = mapper.map_decision(event.id, RuntimeDecision.block("Blocked by rule: policy"))
        assert fe.data["decision_type"] == "deny"
        assert fe.data["message"] == "Blocked by rule: policy"

    def test_question_answer(self):
        mapper = FeedMapper()
        event = make_event("PreToolUse", tool_name="AskUserQuestion", tool_input={})
        mapper.map_event(event)
        fe = mapper.map_decision(
            event.id, RuntimeDecision.with_intent(QuestionAnswer({"q": "a"}), DecisionSource.USER)
        )
        assert fe.data == {"decision_type": "allow", "reason": "answered"}

    def test_stop_block(self):
        mapper = FeedMapper()
        event = make_event("Stop")
        mapper.map_event(event)
        fe = mapper.map_decision(event.id, RuntimeDecision.with_intent(StopBlock("not yet"), DecisionSource.USER))
        assert fe.kind == FeedKind.STOP_DECISION
        assert fe.data == {"decision_type": "block", "reason": "not yet"}
        assert fe.title == "⛔ Blocked: not yet"
        assert mapper.current_run.counters["blocks"] == 1

    def test_stop_timeout(self):
        mapper = FeedMapper()
        event = make_event("Stop")
        mapper.map_event(event)
        fe = mapper.map_decision(event.id, RuntimeDecision.passthrough())
        assert fe.data == {"decision_type": "no_opinion", "reason": "timeout"}

    def test_forget_request(self):
        mapper = FeedMapper()
        event = make_event("PreToolUse", tool_name="Read", tool_input={})
        mapper.map_event(event)
        assert mapper.forget_request(event.id) is True
        assert mapper.map_decision(event.id, RuntimeDecision.passthrough()) is None
