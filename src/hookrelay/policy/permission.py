"""权限策略 - 粗粒度 safe / dangerous 判定

用于决定一个工具请求是否需要提示用户。

与 risk_tier 共用工具表，但默认值不同：
- risk_tier:      未知工具 → MODERATE
- tool_category:  未知工具 → DANGEROUS
"""

from enum import Enum
from typing import Any

from .risk import RiskTier, risk_tier
from .rules import HookRule, match_rule

SAFE_TOOLS = frozenset(
    {
        "Read",
        "Glob",
        "Grep",
        "WebSearch",
        "WebFetch",
        "Task",
        "TodoRead",
        "TodoWrite",
        "TaskCreate",
        "TaskUpdate",
        "TaskList",
        "TaskGet",
        "AskUserQuestion",
    }
)

DANGEROUS_TOOLS = frozenset({"Bash", "Write", "Edit", "NotebookEdit"})


class ToolCategory(Enum):
    """工具类别"""

    SAFE = "safe"
    DANGEROUS = "dangerous"


def tool_category(tool_name: str, tool_input: dict[str, Any] | None = None) -> ToolCategory:
    """判定工具是 safe 还是 dangerous

    READ 级别的 Bash 命令和 MCP action 视为 safe，其余未知工具均为 dangerous。

    Args:
        tool_name: 工具名
        tool_input: 工具输入（Bash 需要 command 字段）

    Returns:
        ToolCategory
    """
    if tool_name in SAFE_TOOLS:
        return ToolCategory.SAFE

    if tool_name == "Bash":
        if risk_tier(tool_name, tool_input) == RiskTier.READ:
            return ToolCategory.SAFE
        return ToolCategory.DANGEROUS

    if tool_name in DANGEROUS_TOOLS:
        return ToolCategory.DANGEROUS

    if tool_name.startswith("mcp__"):
        if risk_tier(tool_name) == RiskTier.READ:
            return ToolCategory.SAFE
        return ToolCategory.DANGEROUS

    return ToolCategory.DANGEROUS


def is_permission_required(
    tool_name: str,
    rules: "list[HookRule] | tuple[HookRule, ...]",
    tool_input: dict[str, Any] | None = None,
) -> bool:
    """是否需要向用户请求权限

    safe 工具或已有匹配规则（approve / deny）时不需要。
    """
    if tool_category(tool_name, tool_input) == ToolCategory.SAFE:
        return False
    return match_rule(rules, tool_name) is None
