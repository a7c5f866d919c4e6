from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import NamedTuple, Optional

from .multiline_log_handler import LineClassifier, StreamState


class Emission(NamedTuple):
    stream: StreamState
    timestamp: datetime
    continuation: bool
    line: str


class Merger:
    """
    Iterator that merges the lines of several log streams in timestamp order, yielding
    one Emission per line.

    Each stream buffers a single line. On every step, streams that have no buffered
    line are refilled, exhausted streams are dropped, and the remaining streams are
    sorted so that a stream holding a continuation line comes first (so that it stays
    attached to the entry just emitted), then by timestamp, then by input order.
    """
    def __init__(self, streams: Iterable[StreamState], classifier: LineClassifier):
        self.active = list(streams)
        self.classifier = classifier
        self.last_emitted: Optional[StreamState] = None

    @staticmethod
    def ordering_key(stream: StreamState) -> tuple[bool, datetime, int]:
        return not stream.continuation, stream.timestamp, stream.index

    def __iter__(self):
        return self

    def __next__(self) -> Emission:
        for stream in self.active:
            if not stream.has_line:
                self.classifier.refill(stream, at_head=stream is self.last_emitted)

        self.active = [stream for stream in self.active if stream.has_line]
        if not self.active:
            raise StopIteration

        self.active.sort(key=self.ordering_key)
        head = self.active[0]
        emission = Emission(head, head.timestamp, head.continuation, head.line)

        head.has_line = False
        head.continuation = False
        self.last_emitted = head
        return emission
