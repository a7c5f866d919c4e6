import gzip
import os

import pytest

from logweaver.exceptions import DecompressionError, OpenError
from logweaver.file_reading import FileReader, GzipFileReader, LogSource, TextFileReader, expand_sources

from .util import write_log


LOG_LINES = [
    "2023-07-14 08:00:01,000 WARN   Connection lost due to timeout",
    "Traceback (most recent call last):",
    "2023-07-14 08:00:04,000 ERROR  Request processed unsuccessfully",
]


def test_read_text_file(tmp_path):
    log_file = write_log(tmp_path / "app.log", LOG_LINES)

    reader = FileReader.get_reader(str(log_file))

    assert isinstance(reader, TextFileReader)
    assert list(reader) == LOG_LINES
    assert reader.closed


@pytest.mark.parametrize("file_name", ["app.log.gz", "app.log.1", "app.log"])
def test_gzip_detected_by_content(tmp_path, file_name):
    log_file = write_log(tmp_path / file_name, LOG_LINES, compress=True)

    with FileReader.get_reader(str(log_file)) as reader:
        assert isinstance(reader, GzipFileReader)
        assert list(reader) == LOG_LINES


def test_plain_file_with_gz_name(tmp_path):
    log_file = write_log(tmp_path / "app.log.gz", LOG_LINES)

    with FileReader.get_reader(str(log_file)) as reader:
        assert isinstance(reader, TextFileReader)
        assert list(reader) == LOG_LINES


def test_line_endings(tmp_path):
    log_file = tmp_path / "app.log"
    log_file.write_bytes(b"first\r\nsecond\rstill second\n\nlast without newline")

    with FileReader.get_reader(str(log_file)) as reader:
        assert list(reader) == ["first", "second\rstill second", "", "last without newline"]


def test_empty_file(tmp_path):
    log_file = tmp_path / "empty.log"
    log_file.write_bytes(b"")

    reader = FileReader.get_reader(str(log_file))
    assert list(reader) == []
    assert reader.closed


def test_undecodable_bytes_are_replaced(tmp_path):
    log_file = tmp_path / "app.log"
    log_file.write_bytes(b"2023-07-14 08:00:01,000 caf\xe9\n")

    with FileReader.get_reader(str(log_file)) as reader:
        assert list(reader) == ["2023-07-14 08:00:01,000 caf\ufffd"]


def test_encoding(tmp_path):
    log_file = tmp_path / "app.log"
    log_file.write_bytes("2023-07-14 08:00:01,000 café\n".encode("latin-1"))

    with FileReader.get_reader(str(log_file), encoding="latin-1") as reader:
        assert list(reader) == ["2023-07-14 08:00:01,000 café"]


def test_missing_file(tmp_path):
    with pytest.raises(OpenError):
        FileReader.get_reader(str(tmp_path / "no_such.log"))


def test_corrupt_gzip(tmp_path):
    log_file = tmp_path / "app.log.gz"
    log_file.write_bytes(b"\x1f\x8b" + b"this is not really compressed")

    reader = FileReader.get_reader(str(log_file))
    with pytest.raises(DecompressionError):
        list(reader)
    assert reader.closed


def test_truncated_gzip(tmp_path):
    log_file = tmp_path / "app.log.gz"
    log_file.write_bytes(gzip.compress("\n".join(LOG_LINES * 20).encode())[:-12])

    reader = FileReader.get_reader(str(log_file))
    with pytest.raises(DecompressionError):
        list(reader)
    assert reader.closed


def test_close_before_exhausted(tmp_path):
    log_file = write_log(tmp_path / "app.log", LOG_LINES)

    with FileReader.get_reader(str(log_file)) as reader:
        assert next(reader) == LOG_LINES[0]
    assert reader.closed
    assert list(reader) == []


def test_expand_sources(tmp_path):
    log_dir = tmp_path / "logs"
    (log_dir / "nginx").mkdir(parents=True)
    for name in ["b.log", "a.log", "nginx/error.log", "nginx/access.log"]:
        write_log(log_dir / name, LOG_LINES)
    explicit = write_log(tmp_path / "app.log", LOG_LINES)

    sources = expand_sources([str(explicit), str(log_dir), str(log_dir / "a.log")])

    assert sources == [
        LogSource(str(explicit), True),
        LogSource(os.path.join(str(log_dir), "a.log"), False),
        LogSource(os.path.join(str(log_dir), "b.log"), False),
        LogSource(os.path.join(str(log_dir), "nginx", "access.log"), False),
        LogSource(os.path.join(str(log_dir), "nginx", "error.log"), False),
    ]


def test_expand_sources_keeps_missing_files_required(tmp_path):
    missing = str(tmp_path / "no_such.log")

    assert expand_sources([missing, missing]) == [LogSource(missing, True)]
