"""Delta events: the incremental units of a model's streamed output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallDelta:
    call_id: str
    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultDelta:
    call_id: str
    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)
    result: Any = None


@dataclass(frozen=True)
class ErrorDelta:
    error: BaseException | str


DeltaEvent = TextDelta | ToolCallDelta | ToolResultDelta | ErrorDelta


@dataclass(frozen=True)
class FinishEvent:
    """Reported once when a model stream runs to completion."""

    text: str
    finish_reason: str
