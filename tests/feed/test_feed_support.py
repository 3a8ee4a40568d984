"""Feed 辅助结构测试：实体、关联索引、标题"""

from hookrelay.feed.correlation import DecisionCorrelator, ToolUseIndex
from hookrelay.feed.entities import ActorKind, ActorRegistry
from hookrelay.feed.titles import generate_title, truncate
from hookrelay.feed.types import FeedCause, FeedEvent, FeedKind, FeedLevel


class TestActorRegistry:
    """Actor 注册表"""

    def test_builtin_actors(self):
        registry = ActorRegistry()
        assert {"user", "agent:root", "system"} <= {a.actor_id for a in registry.all()}
        assert registry.get("user").kind == ActorKind.USER

    def test_ensure_subagent_idempotent(self):
        registry = ActorRegistry()
        first = registry.ensure_subagent("a1", "explore")
        second = registry.ensure_subagent("a1", "other")
        assert first is second
        assert second.display_name == "explore"
        assert first.parent_actor_id == "agent:root"
        assert len(registry) == 4

    def test_subagent_without_type(self):
        registry = ActorRegistry()
        actor = registry.ensure_subagent("a2")
        assert actor.display_name == "a2"
        assert "subagent:a2" in registry


class TestToolUseIndex:
    """tool_use_id 索引"""

    def test_resolve_pops(self):
        index = ToolUseIndex()
        index.record("t1", "E1")
        assert index.resolve("t1") == "E1"
        assert index.resolve("t1") is None

    def test_resolve_none(self):
        assert ToolUseIndex().resolve(None) is None

    def test_clear(self):
        index = ToolUseIndex()
        index.record("t1", "E1")
        index.clear()
        assert len(index) == 0


class TestDecisionCorrelator:
    """request_id 关联"""

    def test_records_decision_capable_kinds(self):
        correlator = DecisionCorrelator()
        assert correlator.record("r1", "E1", FeedKind.TOOL_PRE)
        assert correlator.record("r2", "E2", FeedKind.PERMISSION_REQUEST)
        assert correlator.record("r3", "E3", FeedKind.STOP_REQUEST)
        assert len(correlator) == 3

    def test_ignores_other_kinds(self):
        correlator = DecisionCorrelator()
        assert not correlator.record("r1", "E1", FeedKind.NOTIFICATION)
        assert "r1" not in correlator

    def test_resolve_once(self):
        correlator = DecisionCorrelator()
        correlator.record("r1", "E1", FeedKind.TOOL_PRE)
        assert correlator.peek("r1").event_id == "E1"
        entry = correlator.resolve("r1")
        assert entry.kind == FeedKind.TOOL_PRE
        assert correlator.resolve("r1") is None

    def test_unknown(self):
        assert DecisionCorrelator().resolve("missing") is None


class TestTitles:
    """标题生成"""

    def test_truncate(self):
        assert truncate("abc", 5) == "abc"
        assert truncate("abcdefgh", 5) == "abcd…"
        assert len(truncate("x" * 200)) == 80

    def test_tool_titles(self):
        assert generate_title(FeedKind.TOOL_PRE, {"tool_name": "Bash"}) == "● Bash"
        assert generate_title(FeedKind.TOOL_POST, {"tool_name": "Bash"}) == "⎿ Bash result"
        assert generate_title(FeedKind.TOOL_FAILURE, {"tool_name": "Bash", "error": "x"}) == "✗ Bash failed: x"

    def test_run_titles(self):
        assert generate_title(FeedKind.RUN_START, {"trigger": {"prompt_preview": "fix it"}}) == "Run: fix it"
        assert generate_title(FeedKind.RUN_START, {"trigger": {"prompt_preview": None}}) == "Run started"
        assert generate_title(FeedKind.RUN_END, {"status": "completed"}) == "Run completed"

    def test_permission_decision_titles(self):
        assert generate_title(FeedKind.PERMISSION_DECISION, {"decision_type": "allow"}) == "✓ Allowed"
        assert generate_title(FeedKind.PERMISSION_DECISION, {"decision_type": "deny", "message": "no"}) == "✗ Denied: no"
        assert (
            generate_title(FeedKind.PERMISSION_DECISION, {"decision_type": "no_opinion", "reason": "timeout"})
            == "⏳ No opinion: timeout"
        )

    def test_stop_decision_titles(self):
        assert generate_title(FeedKind.STOP_DECISION, {"decision_type": "allow"}) == "✓ Stop allowed"
        assert generate_title(FeedKind.STOP_DECISION, {"decision_type": "no_opinion"}) == "⏳ Stop: no opinion"

    def test_misc_titles(self):
        assert generate_title(FeedKind.SESSION_START, {"source": "startup"}) == "Session started (startup)"
        assert generate_title(FeedKind.SUBAGENT_START, {"agent_type": "explore"}) == "⚡ Subagent: explore"
        assert generate_title(FeedKind.UNKNOWN_HOOK, {"hook_event_name": "X"}) == "? X"
        assert generate_title(FeedKind.AGENT_MESSAGE, {"scope": "root"}) == "💬 Agent response"

    def test_every_kind_has_title(self):
        for kind in FeedKind:
            assert isinstance(generate_title(kind, {}), str)


class TestFeedEvent:
    """FeedEvent 序列化"""

    def test_to_dict(self):
        event = FeedEvent(
            event_id="s:R1:E1",
            seq=1,
            ts=1,
            session_id="s",
            run_id="s:R1",
            kind=FeedKind.TOOL_PRE,
            level=FeedLevel.INFO,
            actor_id="agent:root",
            cause=FeedCause(hook_request_id="r1"),
            title="● Read",
        )
        data = event.to_dict()
        assert data["kind"] == "tool.pre"
        assert data["level"] == "info"
        assert data["cause"] == {"hook_request_id": "r1"}
