from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
import enum
import logging
from typing import Optional

from .exceptions import SchedulingError
from .timestamp_wrapper import EARLIEST, PatternMatcher, TimestampMatch


logger = logging.getLogger(__name__)

DEFAULT_REPLACEMENT = "<T>"


class Phase(enum.Enum):
    SEEKING = "seeking"
    ESTABLISHED = "established"
    END_OF_STREAM = "end of stream"


class StreamState:
    """
    Read position and timestamp bookkeeping for one log file being merged.

    Holds at most one buffered line (`line`, valid while `has_line` is set), the
    timestamp of the log entry that line belongs to, and whether the line is a
    continuation of the previously emitted entry rather than a new entry.
    """
    def __init__(
            self,
            index: int,
            path: str,
            lines: Iterator[str],
            display_name: Optional[str] = None,
            color_index: Optional[int] = None,
    ):
        self.index = index
        self.path = path
        self.display_name = display_name or path
        self.lines = lines
        self.color_index = color_index

        self.line = ""
        self.has_line = False
        self.end_of_stream = False

        # index of the rule that first parsed a timestamp in this file; never changes once set
        self.rule_index: Optional[int] = None
        self.past_cutoff = False
        self.timestamp: datetime = EARLIEST
        self.continuation = False

        self.warned_skip = False
        self.discarded = 0

    @property
    def phase(self) -> Phase:
        if self.end_of_stream and not self.has_line:
            return Phase.END_OF_STREAM
        if self.rule_index is None:
            return Phase.SEEKING
        return Phase.ESTABLISHED

    def __repr__(self):
        return (
            f"{type(self).__name__}({self.index}, {self.path!r}, phase={self.phase.value},"
            f" timestamp={self.timestamp}, continuation={self.continuation})"
        )


class LineClassifier:
    """
    Refills a stream's line buffer, deciding for each line read whether it starts a
    new log entry (with its own timestamp) or continues the entry before it.

    Continuation lines are lines with no usable timestamp, such as tracebacks, and
    lines whose timestamp is earlier than the entry they follow, such as command
    output pasted into a log after the line that ran the command:

        [2020-10-05 16:06:40] systemctl status mariadb -l --no-pager
        * mariadb.service - MariaDB 10.4.13 database server
        Oct 05 16:06:15 tpvm1 -innobackupex-backup[6193]: [00] 2020-10-05 16:06:15 All tables unlocked

    Lines at the start of a file that no rule can parse are dropped, with one warning
    per file.
    """
    def __init__(
            self,
            matcher: PatternMatcher,
            cutoff: datetime = EARLIEST,
            replacement: Optional[str] = DEFAULT_REPLACEMENT,
    ):
        self.matcher = matcher
        self.cutoff = cutoff
        self.replacement = replacement

    def refill(self, stream: StreamState, at_head: bool = False) -> None:
        """
        Read lines from the stream until one is accepted into its buffer, or the stream
        is exhausted. `at_head` is True when the stream's previous line was the last
        line emitted by the merge.
        """
        if stream.has_line or stream.end_of_stream:
            return

        if stream.phase is Phase.ESTABLISHED and stream.past_cutoff and not at_head:
            # only the stream that was just emitted can need a new line once merging is underway
            raise SchedulingError(f"refill requested for {stream.path} while not at the head of the merge")

        for line in stream.lines:
            stream.line = line
            if stream.phase is Phase.SEEKING:
                accepted = self._seek(stream)
            else:
                accepted = self._advance(stream, at_head)

            if accepted:
                stream.has_line = True
                return

            if stream.phase is Phase.SEEKING and not stream.warned_skip:
                logger.warning("skipping unparsed lines from start of %s...", stream.path)
                stream.warned_skip = True
            stream.discarded += 1

        stream.line = ""
        stream.end_of_stream = True

    def _seek(self, stream: StreamState) -> bool:
        found = self.matcher.find_rule(stream.line)
        if found is None:
            return False

        stream.rule_index, ts_match = found
        logger.debug(
            "timestamp rule %d (%s) established for %s",
            stream.rule_index, self.matcher.rules[stream.rule_index].pattern, stream.path
        )
        if ts_match.timestamp <= self.cutoff:
            return False

        self._start_entry(stream, ts_match)
        return True

    def _advance(self, stream: StreamState, at_head: bool) -> bool:
        ts_match = self.matcher.match_rule(stream.rule_index, stream.line)

        if ts_match is not None and ts_match.timestamp > self.cutoff:
            if ts_match.timestamp < stream.timestamp:
                # a line can't predate the entry it follows, so it must be part of it
                stream.continuation = True
                self._redact(stream, ts_match)
            else:
                self._start_entry(stream, ts_match)
            return True

        if at_head and stream.past_cutoff:
            # no timestamp of its own, so it belongs with the line just emitted
            stream.continuation = True
            return True

        return False

    def _start_entry(self, stream: StreamState, ts_match: TimestampMatch) -> None:
        stream.past_cutoff = True
        stream.timestamp = ts_match.timestamp
        stream.continuation = False
        self._redact(stream, ts_match)

    def _redact(self, stream: StreamState, ts_match: TimestampMatch) -> None:
        if self.replacement is not None:
            stream.line = ts_match.redact(stream.line, self.replacement)
