"""Conversion between wire transcript entries and langchain messages."""

from __future__ import annotations

import json
import uuid
from typing import Any

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from research_agent.schemas import ChatMessage


def extract_text(content: Any) -> str:
    """Normalize message content. Providers return a string or a list of blocks.

    Only text blocks count; tool_use and partial tool-input blocks are skipped.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


def tool_message(call_id: str, tool_name: str, result: Any) -> ToolMessage:
    """Wrap a tool payload; the raw payload survives as ``artifact``."""
    content = result if isinstance(result, str) else json.dumps(result, default=str)
    return ToolMessage(content=content, tool_call_id=call_id, name=tool_name, artifact=result)


def _text_of_parts(parts: list[dict[str, Any]]) -> str:
    return "".join(p.get("text", "") for p in parts if p.get("type") == "text")


def to_langchain(messages: list[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for msg in messages:
        parts = msg.content if isinstance(msg.content, list) else None
        text = _text_of_parts(parts) if parts is not None else msg.content

        match msg.role:
            case "user":
                converted.append(HumanMessage(content=text))
            case "system":
                converted.append(SystemMessage(content=text))
            case "assistant":
                tool_calls = [
                    {
                        "name": p["toolName"],
                        "args": p.get("args") or {},
                        "id": p.get("toolCallId") or f"call_{uuid.uuid4().hex[:12]}",
                    }
                    for p in parts or []
                    if p.get("type") == "tool-call"
                ]
                converted.append(AIMessage(content=text, tool_calls=tool_calls))
            case "tool":
                for p in parts or []:
                    if p.get("type") != "tool-result":
                        continue
                    converted.append(tool_message(p["toolCallId"], p.get("toolName", ""), p.get("result")))
    return converted


def _tool_result_payload(msg: ToolMessage) -> Any:
    if msg.artifact is not None:
        return msg.artifact
    try:
        return json.loads(msg.content) if isinstance(msg.content, str) else msg.content
    except ValueError:
        return msg.content


def from_langchain(messages: list[BaseMessage]) -> list[ChatMessage]:
    """Inverse of ``to_langchain``; consecutive tool messages share one entry."""
    converted: list[ChatMessage] = []
    for msg in messages:
        if isinstance(msg, ToolMessage):
            part = {
                "type": "tool-result",
                "toolCallId": msg.tool_call_id,
                "toolName": msg.name or "",
                "result": _tool_result_payload(msg),
            }
            if converted and converted[-1].role == "tool":
                converted[-1].content.append(part)
            else:
                converted.append(ChatMessage(role="tool", content=[part]))
        elif isinstance(msg, AIMessage):
            text = extract_text(msg.content)
            if msg.tool_calls:
                parts: list[dict[str, Any]] = [{"type": "text", "text": text}]
                parts.extend(
                    {"type": "tool-call", "toolCallId": tc["id"], "toolName": tc["name"], "args": tc["args"]}
                    for tc in msg.tool_calls
                )
                converted.append(ChatMessage(role="assistant", content=parts))
            else:
                converted.append(ChatMessage(role="assistant", content=text))
        elif isinstance(msg, SystemMessage):
            converted.append(ChatMessage(role="system", content=extract_text(msg.content)))
        else:
            converted.append(ChatMessage(role="user", content=extract_text(msg.content)))
    return converted
