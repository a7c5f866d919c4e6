#
# log_weaver.py
#
# Utility for combining log files into a single log in chronological order.
#

import argparse
from collections.abc import Iterable
from contextlib import ExitStack
import logging
import os
from pathlib import Path
import sys

import dateutil.parser
import dateutil.tz
import littletable as lt
from rich.color import ColorSystem
from rich.console import Console
from rich.logging import RichHandler
from rich.style import Style

from . import __version__, default_config
from .config import USER_CONFIG_PATH, load_rules, read_user_config
from .exceptions import ConfigError, LogWeaverError, OpenError, SourceReadError
from .file_reading import FileReader, expand_sources
from .merging import Emission, Merger
from .multiline_log_handler import DEFAULT_REPLACEMENT, LineClassifier, StreamState
from .output_formatting import (
    TIMESTAMP_FORMAT_DEFAULT,
    TIMESTAMP_FORMAT_FULL,
    TIMESTAMP_FORMAT_SHORT,
    OutputFormatter,
    OutputStyle,
    source_color,
)
from .timestamp_wrapper import EARLIEST, UTC, PatternMatcher


logger = logging.getLogger(__name__)

# stick to the basic 8 colors, the others have a lot of darks that are hard to see on a black background
COLOR_PALETTE_SIZE = 8

CSV_FIELDS = ["timestamp", "source", "continuation", "line"]


class MatchFormatAction(argparse.Action):
    """Attaches a format to the most recent --match pattern."""
    def __call__(self, parser, namespace, values, option_string=None):
        rules = getattr(namespace, "match", None)
        if not rules or len(rules[-1]) > 1:
            parser.error(f"{option_string} must follow a --match pattern that has no format yet")
        rules[-1].append(values)


def make_argument_parser():
    description = f"""\
logweaver v{__version__}
Combine log files together in chronological order.
"""
    epilog_notes = f"""
    The timestamp format of each log file is detected automatically, using the first
    timestamp rule that can parse one of its lines. Log lines with no timestamp of
    their own (such as tracebacks) are kept with the log entry before them.

    Extra rules can be given with --match, or in {USER_CONFIG_PATH} (see
    --show-default-config for the file format).

    The default timestamp format is {TIMESTAMP_FORMAT_DEFAULT.replace("%", "%%")}.
    See https://strftime.org/ for timestamp format syntax.
    """

    parser = argparse.ArgumentParser(
        prog="logweaver",
        description=description,
        epilog=epilog_notes,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("files", nargs="*", help="log files to process; directories are read recursively")
    parser.add_argument("--show-path", "-f", action="store_true", help="use full path of log file in output")

    time_format_group = parser.add_mutually_exclusive_group()
    time_format_group.add_argument(
        "--full-timestamp", "-1",
        dest="time_format",
        action="store_const",
        const=TIMESTAMP_FORMAT_FULL,
        help=f"use a fuller timestamp format ({TIMESTAMP_FORMAT_FULL.replace('%', '%%')})"
    )
    time_format_group.add_argument(
        "--short-timestamp", "-2",
        dest="time_format",
        action="store_const",
        const=TIMESTAMP_FORMAT_SHORT,
        help=f"use a short timestamp format ({TIMESTAMP_FORMAT_SHORT.replace('%', '%%')})"
    )
    time_format_group.add_argument(
        "--time-format", "-t",
        dest="time_format",
        help="strftime-compatible string to use when printing out timestamps"
    )

    parser.add_argument(
        "--dont-replace-timestamp", "-d",
        action="store_true",
        help="don't replace timestamps in log file output"
    )
    parser.add_argument(
        "--timestamp-replacement", "-r",
        default=DEFAULT_REPLACEMENT,
        help=f"use this token instead of a timestamp for narrower output (default {DEFAULT_REPLACEMENT})"
    )
    parser.add_argument(
        "--no-timestamp", "-n",
        action="store_true",
        help="don't prefix the line with the normalized timestamp"
    )
    parser.add_argument(
        "--color", "-c",
        choices=["auto", "always", "never"],
        default="auto",
        help="use terminal colors (default auto, when writing to a terminal that supports them)"
    )
    parser.add_argument("--tail-F-style", "-F", dest="tail_style", action="store_true", help="use tail -F style output")
    parser.add_argument(
        "--alt-style", "-G",
        action="store_true",
        help="log file name on a separate line; timestamp is a prefix"
    )
    parser.add_argument("--separator", "-s", action="store_true", help="print a separator between different log files")
    parser.add_argument("--after", "-a", help="show only log entries after this point in time")
    parser.add_argument("--timezone", "-z", default="UTC", help="display timestamps relative to this timezone")
    parser.add_argument(
        "--match", "-m",
        action="append",
        nargs=1,
        default=[],
        metavar="PATTERN",
        help="additional timestamp rule: regex with one capture group around the timestamp;"
             " may be given more than once"
    )
    parser.add_argument(
        "--match-format", "-M",
        action=MatchFormatAction,
        default=argparse.SUPPRESS,
        metavar="FORMAT",
        help="strptime format (or epoch, epoch_millis) for the --match pattern just before it"
    )
    parser.add_argument("--config", type=Path, help=f"timestamp rule file (defaults to {USER_CONFIG_PATH})")
    config_group = parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show-user-config",
        action="store_true",
        help="show the user's configuration as TOML"
    )
    config_group.add_argument(
        "--show-default-config",
        action="store_true",
        help="show the default built-in configuration as TOML"
    )
    parser.add_argument("--csv", help="save merged logs to CSV file")
    parser.add_argument(
        "--encoding", "-enc",
        default="utf-8",
        help="encoding to use when reading log files (defaults to utf-8)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="show debugging messages")

    return parser


def parse_cutoff(ts_str: str):
    try:
        cutoff = dateutil.parser.parse(ts_str)
    except (ValueError, OverflowError) as exc:
        raise ConfigError(f"did not understand --after argument {ts_str!r}: {exc}") from exc
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=UTC)
    return cutoff


def parse_timezone(tz_name: str):
    tz = dateutil.tz.gettz(tz_name)
    if tz is None:
        raise ConfigError(f"error interpreting {tz_name!r} as a timezone")
    return tz


class LogWeaverApplication:
    def __init__(self, config: argparse.Namespace):
        self.config = config
        self.encoding = config.encoding

        for rule_args in config.match:
            if len(rule_args) > 2:
                raise ConfigError(f"--match takes a pattern and an optional format, got {rule_args}")

        self.cutoff = EARLIEST if config.after is None else parse_cutoff(config.after)

        # tail -F style has no timestamp prefix, so leave the timestamps in the log lines
        if config.dont_replace_timestamp or config.tail_style:
            self.replacement = None
        else:
            self.replacement = config.timestamp_replacement

        self.style = OutputStyle(
            show_timestamp=not config.no_timestamp,
            full_path=config.show_path,
            alt_style=config.alt_style,
            tail_style=config.tail_style,
            separator=config.separator,
            timezone=parse_timezone(config.timezone),
            time_format=config.time_format or TIMESTAMP_FORMAT_DEFAULT,
        )

    def run(self):
        console = self._make_console()

        if self.config.show_default_config:
            console.out(default_config.text, end="")
            return
        if self.config.show_user_config:
            console.out(read_user_config(self.config.config), end="")
            return

        rules = load_rules(self.config.match, self.config.config)
        classifier = LineClassifier(PatternMatcher(rules), self.cutoff, self.replacement)

        # readers are closed on leaving this block, whether merging completes or fails
        with ExitStack() as readers:
            streams = self._open_streams(readers)
            merger = Merger(streams, classifier)
            formatter = OutputFormatter(self.style, streams)

            if self.config.csv:
                self._export_csv(merger, formatter)
            else:
                palette_size = self._palette_size(console)
                for stream in streams:
                    stream.color_index = source_color(stream.index, palette_size)
                self._print_merged_lines(console, streams, merger, formatter)

    def _make_console(self) -> Console:
        return Console(
            force_terminal=True if self.config.color == "always" else None,
            no_color=self.config.color == "never",
            highlight=False,
            markup=False,
            emoji=False,
            soft_wrap=True,
        )

    def _palette_size(self, console: Console) -> int:
        if self.config.color == "never":
            return 0
        if self.config.color == "always" or (console.is_terminal and console.color_system is not None):
            return COLOR_PALETTE_SIZE
        return 0

    def _open_streams(self, readers: ExitStack) -> list[StreamState]:
        streams = []
        for source in expand_sources(self.config.files):
            try:
                reader = readers.enter_context(FileReader.get_reader(source.name, self.encoding))
            except OpenError as exc:
                if source.required:
                    raise
                logger.warning("%s - skipping", exc)
                continue

            logger.debug("including %s (%s)", source.name, type(reader).__name__)
            streams.append(
                StreamState(len(streams), source.name, reader, display_name=os.path.basename(source.name))
            )
        return streams

    @staticmethod
    def _print_merged_lines(
            console: Console,
            streams: list[StreamState],
            emissions: Iterable[Emission],
            formatter: OutputFormatter,
    ):
        # written directly, not as rich Text, so that tabs in log lines are not expanded
        out = console.file

        def write(stream: StreamState, line: str):
            if stream.color_index is not None:
                line = Style(color=f"color({stream.color_index})").render(line, color_system=ColorSystem.STANDARD)
            out.write(line + "\n")

        for stream, line in zip(streams, formatter.banner(streams)):
            write(stream, line)
        out.write("\n")

        for emission in emissions:
            for line in formatter.format(emission):
                write(emission.stream, line)
        out.flush()

    def _export_csv(self, emissions: Iterable[Emission], formatter: OutputFormatter):
        merged_lines_table = lt.Table()
        merged_lines_table.insert_many(
            {
                "timestamp": formatter.local_time(emission.timestamp).isoformat(),
                "source": formatter.display_name(emission.stream),
                "continuation": emission.continuation,
                "line": emission.line,
            }
            for emission in emissions
        )
        merged_lines_table.csv_export(self.config.csv, fieldnames=CSV_FIELDS)


def _discard_stdout():
    # stdout is flushed again at interpreter exit, which would fail on the closed pipe
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
    )
    if verbose:
        logging.getLogger("logweaver").setLevel(logging.DEBUG)


def main(argv=None) -> int:

    parser = make_argument_parser()
    args_ns = parser.parse_args(argv)
    if not args_ns.files and not (args_ns.show_default_config or args_ns.show_user_config):
        parser.error("please specify files or directories to process")

    configure_logging(args_ns.verbose)

    try:
        app = LogWeaverApplication(args_ns)
        app.run()
    except BrokenPipeError:
        # reader of the output (such as head) went away; not an error
        _discard_stdout()
        return 0
    except (LogWeaverError, SourceReadError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
