"""Rule & Risk Engine - 纯分类函数

模块结构：
- rules: HookRule, RuleBook, match_rule
- risk: RiskTier, risk_tier, parse_tool_name
- bash: classify_bash_command
- permission: ToolCategory, tool_category, is_permission_required
"""

from .bash import classify_bash_command
from .permission import ToolCategory, is_permission_required, tool_category
from .risk import RiskTier, parse_tool_name, risk_tier
from .rules import HookRule, RuleAction, RuleBook, match_rule

__all__ = [
    "HookRule",
    "RuleAction",
    "RuleBook",
    "match_rule",
    "RiskTier",
    "risk_tier",
    "parse_tool_name",
    "classify_bash_command",
    "ToolCategory",
    "tool_category",
    "is_permission_required",
]
