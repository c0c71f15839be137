"""
Output formatters for CLI display.

Supports human-readable, JSON, and markdown output modes.
"""

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, Optional


class OutputFormat(str, Enum):
    HUMAN = "human"
    JSON = "json"
    MARKDOWN = "markdown"


def format_result(
    result: Any,
    fmt: OutputFormat = OutputFormat.HUMAN,
    title: Optional[str] = None,
) -> str:
    """Format a result object (dataclass, dict or object) for display."""
    if fmt == OutputFormat.JSON:
        return _format_json(result)
    elif fmt == OutputFormat.MARKDOWN:
        return _format_markdown(result, title)
    else:
        return _format_human(result, title)


def _to_dict(result: Any) -> Dict:
    if hasattr(result, "summary") and callable(result.summary):
        return result.summary()
    if is_dataclass(result):
        return asdict(result)
    elif isinstance(result, dict):
        return result
    elif hasattr(result, "__dict__"):
        return result.__dict__
    return {"value": str(result)}


def _format_json(result: Any) -> str:
    return json.dumps(_to_dict(result), indent=2, default=str)


def _format_value(value: Any, joiner: str) -> str:
    if isinstance(value, (list, tuple)):
        if not value:
            return "(none)" if joiner == "\n" else "-"
        if joiner == "\n":
            return "\n" + "\n".join(f"  - {v}" for v in value)
        return joiner.join(str(v) for v in value)
    return str(value)


def _format_human(result: Any, title: Optional[str] = None) -> str:
    lines = []
    if title:
        lines.extend([title, "=" * len(title), ""])

    data = _to_dict(result)
    max_key_len = max(len(str(k)) for k in data.keys()) if data else 0

    for key, value in data.items():
        label = key.replace("_", " ").title()
        lines.append(f"{label:<{max_key_len + 2}}: {_format_value(value, chr(10))}")

    return "\n".join(lines)


def _format_markdown(result: Any, title: Optional[str] = None) -> str:
    lines = []
    if title:
        lines.extend([f"# {title}", ""])

    data = _to_dict(result)
    lines.extend(["| Field | Value |", "|-------|-------|"])

    for key, value in data.items():
        label = key.replace("_", " ").title()
        lines.append(f"| {label} | {_format_value(value, ', ')} |")

    return "\n".join(lines)
