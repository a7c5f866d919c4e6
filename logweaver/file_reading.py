from __future__ import annotations

import abc
from collections.abc import Iterable
import gzip
import io
import os
from typing import BinaryIO, NamedTuple
import zlib

from .exceptions import DecompressionError, OpenError, SourceReadError


GZIP_MAGIC = b"\x1f\x8b"


def _chomp(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


class FileReader:
    """
    Iterator over the text lines of one log file, with line endings removed.

    get_reader peeks at the first bytes of the file to pick the subclass that can
    read it, so compressed files are detected by content, not by file name. The
    underlying file is closed when the lines are exhausted, on close(), or on leaving
    a `with` block.
    """
    @classmethod
    def get_reader(cls, name: str, encoding: str = "utf-8") -> FileReader:
        try:
            raw = open(name, "rb")
        except OSError as exc:
            raise OpenError(f"cannot open log file {name}: {exc.strerror or exc}") from exc

        try:
            header = raw.peek(len(GZIP_MAGIC))[:len(GZIP_MAGIC)]
            for subcls in cls.__subclasses__():
                if subcls is TextFileReader:
                    continue
                if subcls._can_read(header):
                    return subcls(name, raw, encoding)
            return TextFileReader(name, raw, encoding)
        except BaseException:
            raw.close()
            raise

    @classmethod
    @abc.abstractmethod
    def _can_read(cls, header: bytes) -> bool:
        """Override in subclasses"""

    def __init__(self, file_name: str, raw: BinaryIO, encoding: str):
        self.file_name = file_name
        self.encoding = encoding
        self._raw = raw
        self._text = io.TextIOWrapper(self._open_stream(raw), encoding=encoding, errors="replace", newline="\n")
        self._iter = map(_chomp, self._text)

    @abc.abstractmethod
    def _open_stream(self, raw: BinaryIO) -> BinaryIO:
        """Override in subclasses"""

    @property
    def closed(self) -> bool:
        return self._raw.closed

    def close(self) -> None:
        if not self._text.closed:
            self._text.close()
        self._raw.close()

    def __enter__(self) -> FileReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __iter__(self):
        return self

    def __next__(self) -> str:
        if self.closed:
            raise StopIteration
        try:
            return next(self._iter)
        except StopIteration:
            self.close()
            raise
        except (EOFError, zlib.error, gzip.BadGzipFile) as exc:
            self.close()
            raise DecompressionError(f"malformed compressed content in {self.file_name}: {exc}") from exc
        except (OSError, ValueError) as exc:
            self.close()
            raise SourceReadError(f"error reading {self.file_name}: {exc}") from exc


class TextFileReader(FileReader):
    @classmethod
    def _can_read(cls, header: bytes) -> bool:
        return True

    def _open_stream(self, raw: BinaryIO) -> BinaryIO:
        return raw


class GzipFileReader(FileReader):
    @classmethod
    def _can_read(cls, header: bytes) -> bool:
        return header == GZIP_MAGIC

    def _open_stream(self, raw: BinaryIO) -> BinaryIO:
        return gzip.GzipFile(fileobj=raw, mode="rb")


class LogSource(NamedTuple):
    name: str
    # explicitly named on the command line; sources found in directories are not
    required: bool = True


def expand_sources(paths: Iterable[str]) -> list[LogSource]:
    """
    Expand files and directories into the list of log files to merge. Directories are
    walked recursively in sorted order; files found that way are not required, so a
    failure to open one of them is a warning rather than an error. Duplicates are
    dropped, keeping the first occurrence.
    """
    sources = []
    seen = set()

    def add(name: str, required: bool) -> None:
        key = os.path.realpath(name)
        if key not in seen:
            seen.add(key)
            sources.append(LogSource(name, required))

    for path in paths:
        if not os.path.isdir(path):
            add(path, True)
            continue

        def raise_walk_error(exc: OSError) -> None:
            raise OpenError(f"cannot scan directory {path}: {exc.strerror or exc}") from exc

        for dir_path, dir_names, file_names in os.walk(path, onerror=raise_walk_error):
            dir_names.sort()
            for file_name in sorted(file_names):
                add(os.path.join(dir_path, file_name), False)

    return sources
