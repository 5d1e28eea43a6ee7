"""Tests for wire transcript conversion."""

from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from research_agent.messages import extract_text, from_langchain, to_langchain, tool_message
from research_agent.schemas import ChatMessage


class TestExtractText:
    def test_string_and_blocks(self) -> None:
        assert extract_text("plain") == "plain"
        assert extract_text([{"type": "text", "text": "a"}, {"type": "tool_use", "id": "x"}, "b"]) == "ab"
        assert extract_text(None) == ""


class TestToLangchain:
    """Test wire messages to LangChain messages."""

    def test_tool_call_and_result_parts(self) -> None:
        wire = [
            ChatMessage(role="user", content="cats?"),
            ChatMessage(
                role="assistant",
                content=[
                    {"type": "text", "text": "Searching"},
                    {"type": "tool-call", "toolCallId": "c1", "toolName": "search", "args": {"query": "cats"}},
                ],
            ),
            ChatMessage(
                role="tool",
                content=[
                    {"type": "tool-result", "toolCallId": "c1", "toolName": "search", "result": {"results": []}},
                    {"type": "tool-result", "toolCallId": "c2", "toolName": "search", "result": {"results": [1]}},
                ],
            ),
        ]

        messages = to_langchain(wire)

        assert isinstance(messages[0], HumanMessage)
        assert isinstance(messages[1], AIMessage)
        assert messages[1].content == "Searching"
        assert messages[1].tool_calls[0]["id"] == "c1"
        assert [type(m) for m in messages[2:]] == [ToolMessage, ToolMessage]
        assert messages[2].artifact == {"results": []}
        assert messages[3].tool_call_id == "c2"


class TestFromLangchain:
    """Test LangChain messages back to the wire."""

    def test_consecutive_tool_messages_share_one_entry(self) -> None:
        messages = [
            HumanMessage(content="cats?"),
            AIMessage(content="", tool_calls=[{"name": "search", "args": {"query": "cats"}, "id": "c1"}]),
            tool_message("c1", "search", {"results": []}),
            tool_message("c2", "search", {"results": [1]}),
            AIMessage(content="Cats are great."),
        ]

        wire = from_langchain(messages)

        assert [m.role for m in wire] == ["user", "assistant", "tool", "assistant"]
        assert wire[1].content[1] == {"type": "tool-call", "toolCallId": "c1", "toolName": "search", "args": {"query": "cats"}}
        assert [p["toolCallId"] for p in wire[2].content] == ["c1", "c2"]
        assert wire[2].content[1]["result"] == {"results": [1]}
        assert wire[3].content == "Cats are great."

    def test_tool_message_without_artifact_parses_json(self) -> None:
        wire = from_langchain([ToolMessage(content='{"a": 1}', tool_call_id="c1", name="search")])

        assert wire[0].content[0]["result"] == {"a": 1}
