"""Web 服务器 - 下游 HTTP API

渲染端通过这些接口读取 feed / 队列状态，并提交用户决策：

| 方法   | 路径                          | 说明                         |
|--------|-------------------------------|------------------------------|
| GET    | /api/feed                     | feed 事件（可按 run_id 过滤）|
| GET    | /api/queues/{kind}            | 队首 + 数量                  |
| POST   | /api/respond/{request_id}     | 提交决策                     |
| GET    | /api/rules                    | 规则列表                     |
| POST   | /api/rules                    | 添加规则                     |
| DELETE | /api/rules/{rule_id}          | 删除规则                     |
| GET    | /api/status                   | 会话 / run / actor / 队列    |
"""

from dataclasses import asdict, fields
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ..config import METRICS_ENABLED
from ..core.ids import short_id
from ..hooks.decisions import INTENT_TYPES, DecisionSource, DecisionType, RuntimeDecision
from ..pipeline.dispatcher import HookPipeline
from ..pipeline.queues import QueueKind
from ..policy.rules import HookRule
from ..telemetry import get_logger, metrics

logger = get_logger(__name__)


class IntentBody(BaseModel):
    """决策意图（kind 取 INTENT_TYPES 的键）"""

    kind: str
    reason: str | None = None
    answers: dict[str, str] | None = None


class RespondRequest(BaseModel):
    """决策请求"""

    type: DecisionType
    source: DecisionSource = DecisionSource.USER
    intent: IntentBody | None = None
    reason: str | None = None
    data: dict[str, Any] | None = None

    def to_decision(self) -> RuntimeDecision:
        """转换为 RuntimeDecision

        Raises:
            ValueError: 未知的 intent kind
        """
        intent = None
        if self.intent is not None:
            intent_cls = INTENT_TYPES.get(self.intent.kind)
            if intent_cls is None:
                raise ValueError(f"Unknown intent kind: {self.intent.kind}")
            names = {f.name for f in fields(intent_cls)}
            kwargs = {
                name: value
                for name, value in (("reason", self.intent.reason), ("answers", self.intent.answers))
                if name in names and value is not None
            }
            intent = intent_cls(**kwargs)
        return RuntimeDecision(
            type=self.type,
            source=self.source,
            intent=intent,
            reason=self.reason,
            data=self.data,
        )


class RespondResponse(BaseModel):
    accepted: bool


class WebServer:
    """HTTP API 服务器"""

    def __init__(self, pipeline: HookPipeline):
        self.app = FastAPI(title="hookrelay")
        self.pipeline = pipeline
        self._setup_routes()

    def _setup_routes(self):
        @self.app.get("/api/feed")
        async def get_feed(run_id: str | None = None):
            """feed 事件（按发出顺序）"""
            return [
                event.to_dict()
                for event in self.pipeline.feed
                if run_id is None or event.run_id == run_id
            ]

        @self.app.get("/api/queues/{kind}")
        async def get_queue(kind: QueueKind):
            return self.pipeline.queue_view(kind)

        @self.app.post("/api/respond/{request_id}", response_model=RespondResponse)
        async def respond(request_id: str, request: RespondRequest):
            """提交决策；请求未知或已被回复时 accepted=false"""
            try:
                decision = request.to_decision()
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e)) from e

            accepted = await self.pipeline.respond(request_id, decision)
            if not accepted:
                logger.info(f"[Web] Decision for {short_id(request_id)} not accepted")
            return RespondResponse(accepted=accepted)

        @self.app.get("/api/rules")
        async def list_rules():
            return [rule.model_dump(mode="json", by_alias=True) for rule in self.pipeline.rules.snapshot()]

        @self.app.post("/api/rules")
        async def add_rule(rule: HookRule):
            added = self.pipeline.rules.add(rule)
            return added.model_dump(mode="json", by_alias=True)

        @self.app.delete("/api/rules/{rule_id}")
        async def delete_rule(rule_id: str):
            if not self.pipeline.rules.remove(rule_id):
                raise HTTPException(status_code=404, detail=f"Rule not found: {rule_id}")
            return {"removed": rule_id}

        @self.app.get("/api/status")
        async def get_status():
            """会话状态概览"""
            session = self.pipeline.session
            run = self.pipeline.current_run
            return {
                "session": asdict(session) if session else None,
                "active_session_id": self.pipeline.active_session_id,
                "run": asdict(run) if run else None,
                "actors": [asdict(actor) for actor in self.pipeline.actors],
                "queues": {kind.value: len(queue) for kind, queue in self.pipeline.queues.items()},
                "metrics": metrics.get_all_counters() if METRICS_ENABLED else {},
            }
