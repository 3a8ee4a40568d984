"""Hook 规则 - 按工具名自动放行 / 拒绝

规则决定 PreToolUse / PermissionRequest 事件是否可以被自动回答。

匹配语义：
| 模式               | 匹配                             |
|--------------------|----------------------------------|
| `*`                | 所有工具                         |
| `mcp__server__*`   | 该 MCP server 下的任意 action    |
| `Bash`             | 仅精确同名工具                   |

先检查 deny 规则，再检查 approve 规则；同类中第一条命中者胜出；
都不命中表示 "no opinion"。
"""

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..telemetry import get_logger

logger = get_logger(__name__)


class RuleAction(str, Enum):
    """规则动作"""

    DENY = "deny"
    APPROVE = "approve"


class HookRule(BaseModel):
    """单条工具规则

    字段别名兼容 camelCase（toolName / addedBy），便于直接接收前端 JSON。
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    tool_name: str = Field(alias="toolName", min_length=1)
    action: RuleAction
    added_by: str = Field(default="user", alias="addedBy")

    def matches(self, tool_name: str) -> bool:
        """规则模式是否匹配给定工具名"""
        pattern = self.tool_name
        if pattern == "*" or pattern == tool_name:
            return True
        # "mcp__server__*" 匹配 "mcp__server__<anything>"
        if pattern.endswith("__*"):
            return tool_name.startswith(pattern[:-1])
        return False

    @property
    def block_reason(self) -> str:
        """deny 规则产生的拒绝文本"""
        return f"Blocked by rule: {self.added_by}"


def match_rule(rules: "list[HookRule] | tuple[HookRule, ...]", tool_name: str) -> HookRule | None:
    """查找第一条命中的规则

    Args:
        rules: 规则列表（按添加顺序）
        tool_name: 工具名

    Returns:
        命中的规则；deny 优先于 approve；无命中返回 None
    """
    for action in (RuleAction.DENY, RuleAction.APPROVE):
        for rule in rules:
            if rule.action == action and rule.matches(tool_name):
                return rule
    return None


class RuleBook:
    """有序规则集合

    Pipeline 每次 dispatch 都调用 snapshot() 读取最新规则，
    因此规则变更对下一个事件立即生效。
    """

    def __init__(self, rules: list[HookRule] | None = None):
        self._rules: list[HookRule] = list(rules or [])

    def add(self, rule: HookRule) -> HookRule:
        """追加规则（同 id 覆盖旧规则）"""
        self._rules = [r for r in self._rules if r.id != rule.id]
        self._rules.append(rule)
        logger.info(
            f"[Rules] Added {rule.action.value} rule for {rule.tool_name} (by {rule.added_by})"
        )
        return rule

    def remove(self, rule_id: str) -> bool:
        """删除规则

        Returns:
            是否删除成功（不存在时返回 False）
        """
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.id != rule_id]
        removed = len(self._rules) < before
        if removed:
            logger.info(f"[Rules] Removed rule {rule_id}")
        return removed

    def clear(self) -> int:
        """清空规则，返回清除数量"""
        count = len(self._rules)
        self._rules = []
        return count

    def snapshot(self) -> tuple[HookRule, ...]:
        """当前规则的不可变快照"""
        return tuple(self._rules)

    def match(self, tool_name: str) -> HookRule | None:
        return match_rule(self._rules, tool_name)

    def __len__(self) -> int:
        return len(self._rules)
