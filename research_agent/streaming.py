"""Streamable sinks and the per-request channel that carries their events.

A request owns one ``StreamChannel``. Every ``StreamableValue`` and
``StreamableUI`` created from it pushes ``StreamEvent``s into the channel,
and the transport (SSE in main.py) drains ``channel.events()`` in order.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from pydantic import BaseModel

from research_agent.schemas import StreamEvent

logger = logging.getLogger(__name__)

_MISSING: Any = object()


class StreamClosedError(RuntimeError):
    """Raised when writing to a stream that has already been closed."""


class Sink(Protocol):
    """What the researcher needs from an output stream."""

    def update(self, value: Any) -> None: ...

    def done(self) -> Any: ...


class UINode(BaseModel):
    """A structured UI element. Rendering is the client's business."""

    kind: str
    props: dict[str, Any] = {}

    @classmethod
    def answer_section(cls, result_stream: str) -> UINode:
        return cls(kind="answer_section", props={"result_stream": result_stream})

    @classmethod
    def search_section(cls, result_stream: str, include_domains: list[str]) -> UINode:
        return cls(
            kind="search_section",
            props={"result_stream": result_stream, "include_domains": include_domains},
        )

    @classmethod
    def retrieve_section(cls, data: dict[str, Any]) -> UINode:
        return cls(kind="retrieve_section", props={"data": data})


class StreamChannel:
    """Ordered fan-in of every stream event of one request."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._ids = itertools.count()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def create_value(self, initial: Any = None, *, name: str = "value") -> StreamableValue:
        return StreamableValue(self, self._next_id(name), initial)

    def create_ui(self, *, name: str = "ui") -> StreamableUI:
        return StreamableUI(self, self._next_id(name))

    def emit(self, event: StreamEvent) -> None:
        if self._closed:
            raise StreamClosedError(f"Channel is closed, dropping {event.type} event")
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Signal the consumer that no more events will follow."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def events(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class StreamableValue:
    """A value that changes over time and is eventually frozen by ``done``."""

    def __init__(self, channel: StreamChannel, stream_id: str, initial: Any = None) -> None:
        self._channel = channel
        self.id = stream_id
        self._value = initial
        self._closed = False

    @property
    def value(self) -> Any:
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self, method: str) -> None:
        if self._closed:
            raise StreamClosedError(f".{method}(): stream '{self.id}' is already closed")

    def update(self, value: Any) -> None:
        self._check_open("update")
        self._value = value
        self._channel.emit(StreamEvent(type="value", stream=self.id, action="update", payload=value))

    def append(self, delta: str) -> None:
        self._check_open("append")
        self._value = (self._value or "") + delta
        self._channel.emit(StreamEvent(type="value", stream=self.id, action="append", payload=delta))

    def done(self, value: Any = _MISSING) -> None:
        """Close the stream, optionally with a final value. Repeated calls are no-ops."""
        if self._closed:
            logger.debug(f"Stream '{self.id}' already closed")
            return
        if value is not _MISSING:
            self._value = value
        self._closed = True
        self._channel.emit(StreamEvent(type="done", stream=self.id, action="done", payload=self._value))


class StreamableUI:
    """An append-only list of UI nodes whose last node can be replaced."""

    def __init__(self, channel: StreamChannel, stream_id: str) -> None:
        self._channel = channel
        self.id = stream_id
        self._nodes: list[UINode | None] = []
        self._closed = False

    @property
    def nodes(self) -> list[UINode | None]:
        return list(self._nodes)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def channel(self) -> StreamChannel:
        return self._channel

    def create_value(self, initial: Any = None, *, name: str = "value") -> StreamableValue:
        """Create a value stream the UI nodes of this stream can reference."""
        return self._channel.create_value(initial, name=name)

    def _emit(self, action: str, node: UINode | None) -> None:
        payload = node.model_dump() if node is not None else None
        self._channel.emit(StreamEvent(type="ui", stream=self.id, action=action, payload=payload))

    def update(self, node: UINode | None) -> None:
        """Replace the most recent node (``None`` removes what it showed)."""
        if self._closed:
            raise StreamClosedError(f".update(): stream '{self.id}' is already closed")
        if self._nodes:
            self._nodes[-1] = node
        else:
            self._nodes.append(node)
        self._emit("update", node)

    def append(self, node: UINode) -> None:
        if self._closed:
            raise StreamClosedError(f".append(): stream '{self.id}' is already closed")
        self._nodes.append(node)
        self._emit("append", node)

    def done(self, node: UINode | None = _MISSING) -> None:
        if self._closed:
            logger.debug(f"UI stream '{self.id}' already closed")
            return
        if node is not _MISSING:
            self.update(node)
        self._closed = True
        self._emit("done", None)
