"""Request/response models: the contract between the agent and its clients."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ModelDescriptor(BaseModel):
    """A chat model the client may select. Validated, never loaded here."""

    id: str
    name: str
    provider: str
    provider_id: str
    enabled: bool = True
    tool_call_type: Literal["native", "manual"] = "native"
    tool_call_model: str | None = None


class ChatMessage(BaseModel):
    """Transcript entry on the wire.

    ``content`` is either plain text or a list of parts:
        {"type": "text", "text": ...}
        {"type": "tool-call", "toolCallId": ..., "toolName": ..., "args": {...}}
        {"type": "tool-result", "toolCallId": ..., "toolName": ..., "result": ...}
    """

    role: Literal["user", "assistant", "tool", "system"]
    content: str | list[dict[str, Any]]


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    model: ModelDescriptor | None = None


class StreamEvent(BaseModel):
    """A single SSE event in the response stream.

    Types:
        ui     - the UI stream replaced (update) or added (append) a node
        value  - a value stream changed; an update carries the full current
                 value, an append carries only the added text
        error  - the run failed outside the researcher's own handling
        done   - a stream finished; with stream=None the whole run is over
    """

    type: Literal["ui", "value", "error", "done"]
    stream: str | None = None
    action: Literal["update", "append", "done"] | None = None
    payload: Any = None
