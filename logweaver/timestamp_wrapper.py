from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
import logging
import re
from typing import NamedTuple, Optional

import dateutil.parser

from .exceptions import PatternCompileError


logger = logging.getLogger(__name__)

UTC = timezone.utc

# cutoff used when none is configured - every real timestamp is after this
EARLIEST = datetime.min.replace(tzinfo=UTC)

# pseudo-formats for numeric timestamps, mapped to their divisor to get seconds
EPOCH_FORMATS = {
    "epoch": 1,
    "epoch_millis": 1000,
}

_YEAR_DIRECTIVES = ("%Y", "%y", "%G", "%c", "%x")


class TimestampMatch(NamedTuple):
    timestamp: datetime
    start: int
    end: int

    def redact(self, line: str, token: str) -> str:
        return line[:self.start] + token + line[self.end:]


class Rule(NamedTuple):
    r"""
    A timestamp-extraction rule: a regex with exactly one capture group that spans
    the timestamp text, and an optional explicit format for parsing that text.

    Rules are searched (not anchored) against each line, so patterns that must only
    match at the start of a line should begin with "^".

        Log line                                       Rule
        2023-07-14 08:00:01,000 INFO  Started          ^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2},\d{3})
                                                       %Y-%m-%d %H:%M:%S,%f
        Jul 14 08:00:01 host sshd[23]: Accepted        ^([JFMASOND][a-z]{2} [ \d]\d \d{2}:\d{2}:\d{2})
                                                       %b %d %H:%M:%S
    """
    pattern: str
    explicit_format: str
    regex: re.Pattern

    @classmethod
    def compile(cls, pattern: str, explicit_format: Optional[str] = None) -> Rule:
        try:
            regex = re.compile(pattern)
        except re.error as exc:
            raise PatternCompileError(f"invalid timestamp pattern {pattern!r}: {exc}") from exc
        if regex.groups != 1:
            raise PatternCompileError(
                f"timestamp pattern {pattern!r} must have exactly one capture group, found {regex.groups}"
            )
        return cls(pattern, explicit_format or "", regex)


class TimestampResolver:
    """
    Converts captured timestamp text into an aware datetime, using the rule's explicit
    format when there is one, and generic inference (dateutil) otherwise - or when the
    explicit format does not fit the text.

    Naive timestamps are taken to be UTC.
    """
    def __init__(self, now: Callable[[], datetime] = datetime.now):
        self._now = now

    def parse(self, text: str, explicit_format: str = "") -> datetime:
        if explicit_format:
            try:
                return self._as_aware(self._parse_explicit(text, explicit_format))
            except (ValueError, OverflowError, OSError):
                logger.debug("%r does not fit format %r, trying generic parse", text, explicit_format)
        return self._as_aware(self._parse_generic(text))

    def _parse_explicit(self, text: str, fmt: str) -> datetime:
        if fmt in EPOCH_FORMATS:
            return datetime.fromtimestamp(float(text) / EPOCH_FORMATS[fmt], tz=UTC)

        if not any(directive in fmt for directive in _YEAR_DIRECTIVES):
            # format has no year (such as syslog's "Jul 14 08:00:01"), so assume the
            # current year; add it before parsing so that Feb 29 is valid in leap years
            return datetime.strptime(f"{self._now().year} {text}", f"%Y {fmt}")

        return datetime.strptime(text, fmt)

    @staticmethod
    def _parse_generic(text: str) -> datetime:
        try:
            return dateutil.parser.parse(text)
        except OverflowError as exc:
            raise ValueError(f"timestamp out of range: {text!r}") from exc

    @staticmethod
    def _as_aware(dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt


class PatternMatcher:
    """
    Applies an ordered list of Rules to log lines.

    find_rule tries every rule in priority order, and is used to discover which rule
    fits a log file; once that is known, match_rule evaluates just that one rule.
    A rule only matches if its pattern matches the line *and* the captured text
    resolves to a timestamp.
    """
    def __init__(self, rules: Sequence[Rule], resolver: Optional[TimestampResolver] = None):
        self.rules = list(rules)
        self.resolver = resolver or TimestampResolver()

    def find_rule(self, line: str) -> Optional[tuple[int, TimestampMatch]]:
        for rule_index in range(len(self.rules)):
            ts_match = self.match_rule(rule_index, line)
            if ts_match is not None:
                return rule_index, ts_match
        return None

    def match_rule(self, rule_index: int, line: str) -> Optional[TimestampMatch]:
        rule = self.rules[rule_index]
        m = rule.regex.search(line)
        if m is None or m.start(1) < 0:
            return None
        try:
            timestamp = self.resolver.parse(m[1], rule.explicit_format)
        except ValueError:
            return None
        return TimestampMatch(timestamp, m.start(1), m.end(1))
