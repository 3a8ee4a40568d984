"""Transcript enrichment 测试"""

import asyncio
import json

import pytest

from conftest import make_event

from hookrelay.feed.types import FeedKind
from hookrelay.pipeline.dispatcher import HookPipeline
from hookrelay.pipeline.enrichment import TranscriptEnricher
from hookrelay.pipeline.transcript import ERROR_NO_PATH, ERROR_NOT_AVAILABLE, TranscriptSummary
from hookrelay.telemetry import metrics


@pytest.fixture
async def enricher():
    enricher = TranscriptEnricher()
    yield enricher
    await enricher.stop()


def write_transcript(path, text: str):
    entry = {"type": "assistant", "timestamp": "2024-01-01T00:00:00Z", "message": {"content": text}}
    path.write_text(json.dumps(entry) + "\n")
    return str(path)


def find(pipeline: HookPipeline, kind: FeedKind):
    return next(e for e in pipeline.feed if e.kind == kind)


class TestSessionEndEnrichment:
    """SessionEnd transcript 摘要"""

    @pytest.mark.asyncio
    async def test_summary_attached(self, enricher, tmp_path):
        pipeline = HookPipeline(enricher=enricher)
        path = write_transcript(tmp_path / "t.jsonl", "Goodbye")
        await pipeline.dispatch(make_event("SessionStart"))
        await pipeline.dispatch(make_event("SessionEnd", transcript_path=path))
        await enricher.join()

        summary = find(pipeline, FeedKind.SESSION_END).data["transcript_summary"]
        assert summary["last_assistant_text"] == "Goodbye"
        assert summary["message_count"] == 1
        assert summary["error"] is None

    @pytest.mark.asyncio
    async def test_no_path_marked_immediately(self, enricher):
        pipeline = HookPipeline(enricher=enricher)
        await pipeline.dispatch(make_event("SessionEnd"))
        summary = find(pipeline, FeedKind.SESSION_END).data["transcript_summary"]
        assert summary["error"] == ERROR_NO_PATH
        assert enricher.pending == 0

    @pytest.mark.asyncio
    async def test_unreadable_transcript_marked(self, enricher, tmp_path):
        pipeline = HookPipeline(enricher=enricher)
        await pipeline.dispatch(make_event("SessionEnd", transcript_path=str(tmp_path / "gone.jsonl")))
        await enricher.join()
        assert find(pipeline, FeedKind.SESSION_END).data["transcript_summary"]["error"] == ERROR_NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_event_identity_preserved(self, enricher, tmp_path):
        """修补只替换 data，事件 id 与 seq 不变"""
        pipeline = HookPipeline(enricher=enricher)
        await pipeline.dispatch(make_event("SessionEnd", transcript_path=write_transcript(tmp_path / "t", "x")))
        before = find(pipeline, FeedKind.SESSION_END)
        await enricher.join()
        after = find(pipeline, FeedKind.SESSION_END)
        assert after.event_id == before.event_id
        assert after.seq == before.seq
        assert "transcript_summary" not in before.data
        assert pipeline.get_feed_event(after.event_id) is after


class TestSubagentEnrichment:
    """SubagentStop transcript 摘要"""

    @pytest.mark.asyncio
    async def test_subagent_transcript(self, enricher, tmp_path):
        pipeline = HookPipeline(enricher=enricher)
        path = write_transcript(tmp_path / "agent.jsonl", "Found 3 files")
        await pipeline.dispatch(make_event("SubagentStop", agent_id="a1", agent_transcript_path=path))
        await enricher.join()
        summary = find(pipeline, FeedKind.SUBAGENT_STOP).data["transcript_summary"]
        assert summary["last_assistant_text"] == "Found 3 files"

    @pytest.mark.asyncio
    async def test_subagent_without_transcript(self, enricher):
        pipeline = HookPipeline(enricher=enricher)
        await pipeline.dispatch(make_event("SubagentStop", agent_id="a1"))
        assert enricher.pending == 0
        assert "transcript_summary" not in find(pipeline, FeedKind.SUBAGENT_STOP).data


class TestEnricherWorker:
    """worker 行为"""

    @pytest.mark.asyncio
    async def test_parser_runs_off_loop(self, enricher):
        results = []

        async def callback(event_id, summary):
            results.append((event_id, summary))

        enricher.set_callback(callback)
        enricher.submit("E1", "/nonexistent")
        await enricher.join()
        assert results[0][0] == "E1"
        assert results[0][1].error == ERROR_NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_parser_failure_logged(self):
        def boom(path):
            raise RuntimeError("bad parser")

        enricher = TranscriptEnricher(parser=boom)
        enricher.submit("E1", "/x")
        await enricher.join()
        await enricher.stop()
        assert metrics.get_counter("enrichment.errors") == 1

    @pytest.mark.asyncio
    async def test_missing_target_ignored(self):
        pipeline = HookPipeline()
        assert await pipeline.apply_enrichment("gone:R1:E1", TranscriptSummary.failed("x")) is False

    @pytest.mark.asyncio
    async def test_jobs_processed_in_order(self, enricher):
        seen = []

        async def callback(event_id, summary):
            seen.append(event_id)
            await asyncio.sleep(0)

        enricher.set_callback(callback)
        for i in range(5):
            enricher.submit(f"E{i}", "/nonexistent")
        await enricher.join()
        assert seen == [f"E{i}" for i in range(5)]
