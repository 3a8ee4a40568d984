"""Risk tier classification for tools

Tools are placed into four ordered tiers by their side-effect profile:

| Tier        | Examples                                  | Display        |
|-------------|-------------------------------------------|----------------|
| READ        | Read, Glob, Grep, mcp__*__take_screenshot | ℹ cyan, auto   |
| MODERATE    | Task, WebFetch, mcp__*__click, unknown    | ⚠ yellow       |
| WRITE       | Edit, Write, NotebookEdit                 | ⚠ yellow       |
| DESTRUCTIVE | Bash with rm/sudo/..., Bash without input | ⛔ red, confirm |

Bash is sub-classified by its command text (see policy.bash). An unknown
tool is MODERATE here; the coarser safe/dangerous gate in policy.permission
treats the same tool as dangerous.
"""

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class RiskTier(IntEnum):
    """工具风险等级（数值越大越危险）"""

    READ = 0
    MODERATE = 1
    WRITE = 2
    DESTRUCTIVE = 3

    @property
    def label(self) -> str:
        return self.name

    @property
    def icon(self) -> str:
        """显示图标"""
        return {
            RiskTier.READ: "ℹ",
            RiskTier.MODERATE: "⚠",
            RiskTier.WRITE: "⚠",
            RiskTier.DESTRUCTIVE: "⛔",
        }[self]

    @property
    def color(self) -> str:
        """显示颜色"""
        return {
            RiskTier.READ: "cyan",
            RiskTier.MODERATE: "yellow",
            RiskTier.WRITE: "yellow",
            RiskTier.DESTRUCTIVE: "red",
        }[self]

    @property
    def auto_allow(self) -> bool:
        """是否可以不提示直接放行"""
        return self == RiskTier.READ

    @property
    def requires_confirmation(self) -> bool:
        """是否需要显式确认（例如输入确认文本）"""
        return self == RiskTier.DESTRUCTIVE


READ_TOOLS = frozenset({"Read", "Glob", "Grep", "WebSearch", "TodoRead", "AskUserQuestion"})
MODERATE_TOOLS = frozenset({"Task", "WebFetch", "Skill", "TodoWrite"})
WRITE_TOOLS = frozenset({"Edit", "Write", "NotebookEdit"})

READ_MCP_ACTIONS = frozenset(
    {
        "go_back",
        "go_forward",
        "reload",
        "capture_snapshot",
        "find_elements",
        "get_element_details",
        "take_screenshot",
        "scroll_page",
        "scroll_element_into_view",
        "list_pages",
        "ping",
        "get_form_understanding",
        "get_field_context",
    }
)
MODERATE_MCP_ACTIONS = frozenset({"click", "type", "press", "select", "hover", "navigate"})

_MCP_NAME = re.compile(r"^mcp__([^_]+(?:_[^_]+)*)__(.+)$")


@dataclass(frozen=True)
class ParsedToolName:
    """Tool name split into its MCP parts (if any)."""

    name: str
    is_mcp: bool
    mcp_server: str | None = None
    mcp_action: str | None = None


def parse_tool_name(tool_name: str) -> ParsedToolName:
    """Parse "mcp__<server>__<action>" tool names.

    Args:
        tool_name: Tool name as sent by the host

    Returns:
        ParsedToolName; non-MCP names have is_mcp=False
    """
    match = _MCP_NAME.match(tool_name)
    if not match:
        return ParsedToolName(name=tool_name, is_mcp=False)
    return ParsedToolName(
        name=tool_name,
        is_mcp=True,
        mcp_server=match.group(1),
        mcp_action=match.group(2),
    )


def risk_tier(tool_name: str, tool_input: dict[str, Any] | None = None) -> RiskTier:
    """Classify a tool invocation into a risk tier.

    Args:
        tool_name: Tool name
        tool_input: Tool input; only consulted for Bash

    Returns:
        RiskTier, MODERATE for unrecognised tools
    """
    if tool_name == "Bash":
        # 延迟导入避免循环依赖（bash 依赖 RiskTier）
        from .bash import classify_bash_command

        command = (tool_input or {}).get("command")
        if isinstance(command, str):
            return classify_bash_command(command)
        return RiskTier.DESTRUCTIVE

    if tool_name in WRITE_TOOLS:
        return RiskTier.WRITE
    if tool_name in READ_TOOLS:
        return RiskTier.READ
    if tool_name in MODERATE_TOOLS:
        return RiskTier.MODERATE

    parsed = parse_tool_name(tool_name)
    if parsed.is_mcp and parsed.mcp_action:
        if parsed.mcp_action in READ_MCP_ACTIONS:
            return RiskTier.READ
        if parsed.mcp_action in MODERATE_MCP_ACTIONS:
            return RiskTier.MODERATE

    return RiskTier.MODERATE
