"""Bootstrap - 集中构造系统组件

职责：
- 创建 RuleBook, TranscriptEnricher, HookPipeline, HookReceiver
- 计算 socket 路径（项目目录 + 可选实例 id）
- 返回 RuntimeComponents 供调用方使用

不负责：
- WebServer 创建（独立于 hook 系统）

每次调用都构造一组全新的组件，测试中可以并存多个实例。
"""

from dataclasses import dataclass
from pathlib import Path

from ..core.ids import resolve_project_dir, socket_path as default_socket_path
from ..hooks.receiver import HookReceiver
from ..pipeline.dispatcher import HookPipeline
from ..pipeline.enrichment import TranscriptEnricher
from ..policy.rules import HookRule, RuleBook
from ..telemetry import get_logger

logger = get_logger(__name__)


@dataclass
class RuntimeComponents:
    """Bootstrap 返回的运行时组件集合"""

    rules: RuleBook
    enricher: TranscriptEnricher
    pipeline: HookPipeline
    receiver: HookReceiver

    async def start(self) -> None:
        """开始监听 socket"""
        await self.receiver.start()
        logger.info("[Bootstrap] Receiver started")

    async def stop(self) -> None:
        """停止监听，放行所有等待中的请求，停止 enrichment worker"""
        await self.receiver.stop()
        await self.enricher.stop()
        logger.info("[Bootstrap] Components stopped")


def bootstrap(
    project_dir: str | Path | None = None,
    instance_id: str | None = None,
    socket_path: str | Path | None = None,
    rules: list[HookRule] | None = None,
) -> RuntimeComponents:
    """构造运行时组件

    Args:
        project_dir: 项目目录（默认 $CLAUDE_PROJECT_DIR 或 cwd）
        instance_id: 实例 id（默认 $HOOKRELAY_INSTANCE_ID）
        socket_path: 显式 socket 路径，优先于 project_dir / instance_id
        rules: 初始规则

    Returns:
        RuntimeComponents 包含所有构造好的组件
    """
    if socket_path is None:
        base = Path(project_dir) if project_dir is not None else resolve_project_dir()
        socket_path = default_socket_path(base, instance_id)

    rule_book = RuleBook(rules)
    enricher = TranscriptEnricher()
    pipeline = HookPipeline(rules=rule_book, enricher=enricher)
    receiver = HookReceiver(pipeline, socket_path)

    logger.info(f"[Bootstrap] Components created (socket: {socket_path})")
    return RuntimeComponents(
        rules=rule_book,
        enricher=enricher,
        pipeline=pipeline,
        receiver=receiver,
    )
