from datetime import datetime, timedelta, timezone

import pytest

from logweaver.merging import Emission
from logweaver.multiline_log_handler import StreamState
from logweaver.output_formatting import (
    TIMESTAMP_FORMAT_FULL,
    TIMESTAMP_FORMAT_SHORT,
    OutputFormatter,
    OutputStyle,
    source_color,
)

UTC = timezone.utc


@pytest.fixture
def streams():
    return [
        StreamState(0, "/var/log/app.log", iter(()), display_name="app.log"),
        StreamState(1, "/var/log/nginx/error.log", iter(()), display_name="error.log"),
    ]


def emissions(streams):
    app, nginx = streams
    return [
        Emission(app, datetime(2023, 7, 14, 8, 0, 1, tzinfo=UTC), False, "<T> WARN   Connection lost"),
        Emission(app, datetime(2023, 7, 14, 8, 0, 1, tzinfo=UTC), True, "Traceback (most recent call last):"),
        Emission(nginx, datetime(2023, 7, 14, 8, 0, 2, tzinfo=UTC), False, "<T> [error] upstream timed out"),
        Emission(nginx, datetime(2023, 7, 14, 8, 0, 3, tzinfo=UTC), False, "<T> [error] upstream timed out"),
        Emission(app, datetime(2023, 7, 14, 8, 0, 4, tzinfo=UTC), False, "<T> INFO   Reconnected"),
    ]


def format_all(style, streams):
    formatter = OutputFormatter(style, streams)
    return [line for emission in emissions(streams) for line in formatter.format(emission)]


def test_default_style(streams):
    assert format_all(OutputStyle(), streams) == [
        "Fri 08:00:01 | app.log   | <T> WARN   Connection lost",
        "Fri 08:00:01 |           | Traceback (most recent call last):",
        "Fri 08:00:02 | error.log | <T> [error] upstream timed out",
        "Fri 08:00:03 |           | <T> [error] upstream timed out",
        "Fri 08:00:04 | app.log   | <T> INFO   Reconnected",
    ]


def test_full_path_and_no_timestamp(streams):
    assert format_all(OutputStyle(show_timestamp=False, full_path=True), streams) == [
        "/var/log/app.log         | <T> WARN   Connection lost",
        "                         | Traceback (most recent call last):",
        "/var/log/nginx/error.log | <T> [error] upstream timed out",
        "                         | <T> [error] upstream timed out",
        "/var/log/app.log         | <T> INFO   Reconnected",
    ]


def test_separator(streams):
    lines = format_all(OutputStyle(separator=True, time_format=TIMESTAMP_FORMAT_SHORT), streams)

    separator = "======== | ========= | " + "=" * 40
    assert lines == [
        "08:00:01 | app.log   | <T> WARN   Connection lost",
        "08:00:01 |           | Traceback (most recent call last):",
        separator,
        "08:00:02 | error.log | <T> [error] upstream timed out",
        "08:00:03 |           | <T> [error] upstream timed out",
        separator,
        "08:00:04 | app.log   | <T> INFO   Reconnected",
    ]


def test_alt_style(streams):
    assert format_all(OutputStyle(alt_style=True, time_format=TIMESTAMP_FORMAT_SHORT), streams) == [
        "",
        "==> app.log <==",
        "08:00:01 | <T> WARN   Connection lost",
        "08:00:01 | Traceback (most recent call last):",
        "",
        "==> error.log <==",
        "08:00:02 | <T> [error] upstream timed out",
        "08:00:03 | <T> [error] upstream timed out",
        "",
        "==> app.log <==",
        "08:00:04 | <T> INFO   Reconnected",
    ]


def test_alt_style_no_timestamp_separator(streams):
    lines = format_all(OutputStyle(alt_style=True, show_timestamp=False, separator=True), streams)

    assert lines[:4] == ["", "==> app.log <==", "<T> WARN   Connection lost", "Traceback (most recent call last):"]
    assert lines[4:7] == ["=" * 40, "", "==> error.log <=="]


def test_tail_style(streams):
    assert format_all(OutputStyle(tail_style=True, separator=True), streams) == [
        "",
        "==> app.log <==",
        "<T> WARN   Connection lost",
        "Traceback (most recent call last):",
        "",
        "==> error.log <==",
        "<T> [error] upstream timed out",
        "<T> [error] upstream timed out",
        "",
        "==> app.log <==",
        "<T> INFO   Reconnected",
    ]


def test_timezone_and_full_timestamp(streams):
    style = OutputStyle(timezone=timezone(timedelta(hours=2)), time_format=TIMESTAMP_FORMAT_FULL)
    formatter = OutputFormatter(style, streams)

    first = formatter.format(emissions(streams)[0])

    assert first == ["14/Jul/2023:10:00:01 +0200 | app.log   | <T> WARN   Connection lost"]


def test_timestamp_out_of_range_for_timezone(streams):
    style = OutputStyle(timezone=timezone(timedelta(hours=-5)), time_format="%H:%M:%S %z")
    formatter = OutputFormatter(style, streams)
    app, _ = streams

    lines = formatter.format(Emission(app, datetime(1, 1, 1, 0, 0, 1, tzinfo=UTC), False, "<T> very old"))

    assert lines == ["00:00:01 +0000 | app.log   | <T> very old"]


def test_banner(streams):
    assert OutputFormatter(OutputStyle(), streams).banner(streams) == [
        "Including file /var/log/app.log",
        "Including file /var/log/nginx/error.log",
    ]


@pytest.mark.parametrize(
    "palette_size, expected_colors",
    [
        (0, [None] * 8),
        (8, [1, 2, 3, 4, 5, 6, 1, 2]),
        (256, [9, 10, 11, 12, 13, 14, 9, 10]),
    ]
)
def test_source_color(palette_size, expected_colors):
    assert [source_color(index, palette_size) for index in range(8)] == expected_colors
