"""Tests for streamable values, UI streams and the request channel."""

import pytest

from conftest import collect
from research_agent.streaming import StreamChannel, StreamClosedError, UINode


class TestStreamableValue:
    """Test value stream updates and closing."""

    @pytest.mark.asyncio
    async def test_update_append_and_done(self, channel) -> None:
        value = channel.create_value("", name="answer")

        value.update("Hel")
        value.append("lo")
        value.done()
        events = await collect(channel)

        assert value.value == "Hello"
        assert [(e.type, e.action, e.payload) for e in events] == [
            ("value", "update", "Hel"),
            ("value", "append", "lo"),
            ("done", "done", "Hello"),
        ]
        assert all(e.stream == value.id for e in events)

    def test_writes_after_done_raise(self, channel) -> None:
        value = channel.create_value()
        value.done("final")

        with pytest.raises(StreamClosedError):
            value.update("late")
        with pytest.raises(StreamClosedError):
            value.append("late")

    @pytest.mark.asyncio
    async def test_done_is_idempotent(self, channel) -> None:
        value = channel.create_value()
        value.done("x")
        value.done("y")
        events = await collect(channel)

        assert len(events) == 1
        assert value.value == "x"

    def test_ids_are_unique(self, channel) -> None:
        assert channel.create_value(name="v").id != channel.create_value(name="v").id


class TestStreamableUI:
    """Test UI node streams."""

    @pytest.mark.asyncio
    async def test_update_replaces_last_node(self, channel, ui_stream) -> None:
        first = UINode.search_section("search_results_1", [])

        ui_stream.append(UINode.answer_section("answer_0"))
        ui_stream.append(first)
        ui_stream.update(None)
        ui_stream.done()
        events = await collect(channel)

        assert ui_stream.nodes == [UINode.answer_section("answer_0"), None]
        assert [e.action for e in events] == ["append", "append", "update", "done"]
        assert events[2].payload is None
        assert events[0].payload == {"kind": "answer_section", "props": {"result_stream": "answer_0"}}

    def test_update_on_empty_stream_appends(self, ui_stream) -> None:
        ui_stream.update(UINode.retrieve_section({"results": []}))

        assert len(ui_stream.nodes) == 1

    def test_closed_ui_rejects_writes(self, ui_stream) -> None:
        ui_stream.done()

        with pytest.raises(StreamClosedError):
            ui_stream.append(UINode.answer_section("a"))

    def test_values_share_the_channel(self, ui_stream) -> None:
        value = ui_stream.create_value("", name="answer")

        assert value.id.startswith("answer_")
        assert ui_stream.channel is value._channel


class TestStreamChannel:
    def test_emit_after_close_raises(self) -> None:
        channel = StreamChannel()
        value = channel.create_value()
        channel.close()

        assert channel.closed is True
        with pytest.raises(StreamClosedError):
            value.update("x")
