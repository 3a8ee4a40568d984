"""Bash command risk classification

Classifies a shell command by keyword heuristics. The command is split on
``|``, ``||``, ``&&`` and ``;``; each segment is checked against four ordered
tables and the highest tier across segments wins:

| Table       | Examples                                              |
|-------------|-------------------------------------------------------|
| DESTRUCTIVE | rm, sudo, chmod, kill, dd, git push --force, git clean |
| WRITE       | touch, mkdir, cp, mv, tee, sed -i, >, git commit/push |
| MODERATE    | curl, wget, npm install, pip install, docker, make    |
| READ        | allow-list: ls, cat, grep, git status/log/diff, ...   |

Piping into a shell (``| sh``) is checked on the whole command, since the
split removes the pipe. Unmatched segments are MODERATE, as is an empty
command.
"""

import re

from .risk import RiskTier

DESTRUCTIVE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        r"\brm\b",
        r"\bsudo\b",
        r"\bchmod\b",
        r"\bchown\b",
        r"\bkill\b",
        r"\bpkill\b",
        r"\bkillall\b",
        r"\bdd\b",
        r"\bmkfs\b",
        r"\bfdisk\b",
        r"\bgit\s+push\b.*\s--force(?!-with-lease)\b",
        r"\bgit\s+push\b.*\s-f\b",
        r"\bgit\s+reset\s+--hard\b",
        r"\bgit\s+clean\b",
        r"\bgit\s+branch\s+-[dD]\b",
    )
)

PIPE_TO_SHELL = re.compile(r"\|\s*(?:bash|sh|zsh)\b")

WRITE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        r"\btouch\b",
        r"\bmkdir\b",
        r"\bcp\b",
        r"\bmv\b",
        r"\btee\b",
        r"\bsed\s+(?:-\S*i|--in-place)\b",
        r">",
        r"\bgit\s+add\b",
        r"\bgit\s+commit\b",
        r"\bgit\s+push\b",
        r"\bgit\s+checkout\b",
        r"\bgit\s+switch\b",
        r"\bgit\s+merge\b",
        r"\bgit\s+rebase\b",
        r"\bgit\s+stash\b",
        r"\bgit\s+tag\b",
        r"\bnpm\s+publish\b",
    )
)

MODERATE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        r"\bcurl\b",
        r"\bwget\b",
        r"\bnpm\s+(?:install|ci|run|test)\b",
        r"\bnpx\b",
        r"\bpip3?\s+install\b",
        r"\byarn\s+(?:add|install)\b",
        r"\bpnpm\s+(?:add|install)\b",
        r"\bdocker\b",
        r"\bgit\s+(?:fetch|pull|clone)\b",
        r"\bmake\b",
        r"\bcargo\s+build\b",
        r"\bgo\s+build\b",
    )
)

READ_COMMANDS = frozenset(
    {
        "echo", "printf", "cat", "head", "tail", "less", "more", "ls", "dir",
        "pwd", "whoami", "id", "env", "printenv", "wc", "which", "where",
        "type", "file", "stat", "date", "uptime", "uname", "hostname", "df",
        "du", "free", "ps", "top", "htop", "find", "grep", "rg", "awk", "sed",
        "sort", "uniq", "cut", "tr", "diff", "comm", "test", "true", "false",
        "node", "python", "python3", "ruby",
    }
)

READ_GIT_SUBCOMMANDS = frozenset(
    {
        "status", "log", "diff", "show", "branch", "remote", "describe",
        "shortlog", "blame", "bisect", "reflog",
    }
)

_SEGMENT_SPLIT = re.compile(r"\s*(?:\|\||&&|\||;)\s*")
# 重定向到 /dev/null 与 fd 复制（2>&1）不写文件
_HARMLESS_REDIRECT = re.compile(r"\d*>&\d+|&?\d*>{1,2}\s*/dev/null\b")


def split_segments(command: str) -> list[str]:
    """Split a command chain into its non-empty segments."""
    return [s.strip() for s in _SEGMENT_SPLIT.split(command) if s.strip()]


def _is_read_segment(segment: str) -> bool:
    words = segment.split()
    base = words[0].rsplit("/", 1)[-1]
    if base == "git":
        return len(words) > 1 and words[1] in READ_GIT_SUBCOMMANDS
    return base in READ_COMMANDS


def classify_segment(segment: str) -> RiskTier:
    """Classify one segment of a command chain."""
    if any(p.search(segment) for p in DESTRUCTIVE_PATTERNS):
        return RiskTier.DESTRUCTIVE
    if any(p.search(_HARMLESS_REDIRECT.sub("", segment)) for p in WRITE_PATTERNS):
        return RiskTier.WRITE
    if any(p.search(segment) for p in MODERATE_PATTERNS):
        return RiskTier.MODERATE
    if _is_read_segment(segment):
        return RiskTier.READ
    return RiskTier.MODERATE


def classify_bash_command(command: str) -> RiskTier:
    """Classify a Bash command string into a risk tier.

    Total: never raises, returns MODERATE for anything it cannot place.

    Args:
        command: Raw command text from the tool input

    Returns:
        The highest tier over all segments of the command
    """
    text = command.strip() if isinstance(command, str) else ""
    if not text:
        return RiskTier.MODERATE
    if PIPE_TO_SHELL.search(text):
        return RiskTier.DESTRUCTIVE

    segments = split_segments(text)
    if not segments:
        return RiskTier.MODERATE
    return max(classify_segment(s) for s in segments)
