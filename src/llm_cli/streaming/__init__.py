"""Cancellable, backpressured token streaming."""

from .channel import CancellationToken, HandoffChannel
from .coordinator import StreamOutcome, StreamResult, stream_response

__all__ = [
    "CancellationToken",
    "HandoffChannel",
    "StreamOutcome",
    "StreamResult",
    "stream_response",
]
