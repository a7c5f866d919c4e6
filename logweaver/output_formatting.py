from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, tzinfo
from typing import NamedTuple, Optional

from .merging import Emission
from .multiline_log_handler import StreamState
from .timestamp_wrapper import UTC


TIMESTAMP_FORMAT_DEFAULT = "%a %H:%M:%S"
TIMESTAMP_FORMAT_SHORT = "%H:%M:%S"
TIMESTAMP_FORMAT_FULL = "%d/%b/%Y:%H:%M:%S %z"

SEPARATOR_CHAR = "="
SEPARATOR_BODY_WIDTH = 40

# number of palette entries cycled through; skips black (0) and white (7)
_COLORS_IN_CYCLE = 6


def source_color(source_index: int, palette_size: int) -> Optional[int]:
    """
    Color index to use for the source at `source_index`, given the number of colors the
    terminal supports (0 for none). The darker entries of larger palettes are hard to
    read on a black background, so those use the bright colors 9-14 instead of 1-6.
    """
    if palette_size <= 0:
        return None
    first = 9 if palette_size > 8 else 1
    return first + source_index % _COLORS_IN_CYCLE


class OutputStyle(NamedTuple):
    show_timestamp: bool = True
    full_path: bool = False
    alt_style: bool = False
    tail_style: bool = False
    separator: bool = False
    timezone: tzinfo = UTC
    time_format: str = TIMESTAMP_FORMAT_DEFAULT


class OutputFormatter:
    """
    Renders merged log lines as text, prefixing each with its timestamp (in the
    output timezone) and the name of the file it came from. The file name is only
    shown when it changes, so a multiline log entry reads as one block:

        Fri 08:00:01 | app.log    | <T> WARN   Connection lost due to timeout
        Fri 08:00:02 | worker.log | <T> INFO   Request processed successfully
        Fri 08:00:04 | app.log    | <T> ERROR  Request processed unsuccessfully
        Fri 08:00:04 |            | Traceback (most recent call last):
    """
    def __init__(self, style: OutputStyle, streams: Sequence[StreamState] = ()):
        self.style = style
        self.name_width = max((len(self.display_name(stream)) for stream in streams), default=0)
        self.last_source: Optional[StreamState] = None

        time_width = len(self.format_timestamp(datetime.now(style.timezone)))
        columns = []
        if style.show_timestamp:
            columns.append(time_width)
        if not style.alt_style:
            columns.append(self.name_width)
        self.separator_line = " | ".join(
            [SEPARATOR_CHAR * width for width in columns] + [SEPARATOR_CHAR * SEPARATOR_BODY_WIDTH]
        )

    def display_name(self, stream: StreamState) -> str:
        return stream.path if self.style.full_path else stream.display_name

    def local_time(self, timestamp: datetime) -> datetime:
        try:
            return timestamp.astimezone(self.style.timezone)
        except OverflowError:
            # too close to datetime.min or max to shift, so show it in its own timezone
            return timestamp

    def format_timestamp(self, timestamp: datetime) -> str:
        return self.local_time(timestamp).strftime(self.style.time_format)

    def banner(self, streams: Iterable[StreamState]) -> list[str]:
        return [f"Including file {stream.path}" for stream in streams]

    def format(self, emission: Emission) -> list[str]:
        style = self.style
        stream = emission.stream
        source_changed = stream is not self.last_source
        ret = []

        if source_changed:
            if style.separator and not style.tail_style and self.last_source is not None:
                ret.append(self.separator_line)
            if style.tail_style or style.alt_style:
                ret.extend(["", f"==> {self.display_name(stream)} <=="])

        if style.tail_style:
            ret.append(emission.line)
        else:
            columns = []
            if style.show_timestamp:
                columns.append(self.format_timestamp(emission.timestamp))
            if not style.alt_style:
                label = self.display_name(stream) if source_changed and not emission.continuation else ""
                columns.append(label.ljust(self.name_width))
            columns.append(emission.line)
            ret.append(" | ".join(columns))

        self.last_source = stream
        return ret
