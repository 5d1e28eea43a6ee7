"""LangGraph shared state for the research workflow."""

from typing import Annotated

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict


class ResearchState(TypedDict):
    """State passed through the research graph.

    messages        - conversation transcript; add_messages appends each
                      turn's assistant and tool messages.
    full_response   - answer text of the latest turn.
    has_error       - whether the latest turn hit an error.
    finish_reason   - model finish reason of the latest turn ("" if none).
    iterations      - researcher turns run so far in this request.
    """

    messages: Annotated[list[BaseMessage], add_messages]
    full_response: str
    has_error: bool
    finish_reason: str
    iterations: int
