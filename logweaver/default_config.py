text = r"""# Built-in logweaver timestamp rules.
#
# Each [[match]] entry is a regular expression with exactly one capture group
# around the timestamp, and an optional strptime format for the captured text.
# Without a format, or if the format does not fit, the timestamp is parsed
# with generic date inference. The formats "epoch" and "epoch_millis" read
# numeric timestamps since 1970-01-01 UTC. Formats with no year assume the
# current year. Timestamps without a timezone are taken to be UTC.
#
# Rules are tried in order until one parses a line of a file, and that rule is
# then used for the rest of the file. Rules in ~/.logweaver.toml are tried
# before these.

# 2023-07-14 08:00:01,123 - Python logging asctime
[[match]]
match = '^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2},\d+)'
format = '%Y-%m-%d %H:%M:%S,%f'

# 2023-07-14T08:00:01.123456+02:00, 2023-07-14 08:00:01Z, 2023-07-14 08:00:01
[[match]]
match = '^(\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)'

# [2020-10-05 16:06:40] or [2020-10-05T16:06:40.123Z]
[[match]]
match = '^\[(\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?)\]'

# Jul 14 08:00:01 - syslog
[[match]]
match = '^([JFMASOND][a-z]{2} [ \d]\d \d{2}:\d{2}:\d{2})'
format = '%b %d %H:%M:%S'

# 91.194.60.14 - - [16/Sep/2023:19:05:06 +0000] "GET / HTTP/1.1" 200 - web server access log
[[match]]
match = ' \[(\d{2}/[A-Z][a-z]{2}/\d{4}:\d{2}:\d{2}:\d{2} [+-]\d{4})\] '
format = '%d/%b/%Y:%H:%M:%S %z'

# ::1 - - [22/Sep/2023 21:58:40] "GET /log1.txt HTTP/1.1" 200 - Python http.server
[[match]]
match = ' \[(\d{2}/[A-Z][a-z]{2}/\d{4} \d{2}:\d{2}:\d{2})\] '
format = '%d/%b/%Y %H:%M:%S'

# [Fri Dec 01 00:00:25.933177 2023] - web server error log
[[match]]
match = '^\[([A-Z][a-z]{2} [A-Z][a-z]{2} \d{2} \d{2}:\d{2}:\d{2}\.\d+ \d{4})\]'
format = '%a %b %d %H:%M:%S.%f %Y'

# 1694561169550 - milliseconds since epoch
[[match]]
match = '^(\d{13})\b'
format = 'epoch_millis'

# 1694561169.550987 or 1694561169 - seconds since epoch
[[match]]
match = '^(\d{10}(?:\.\d+)?)\b'
format = 'epoch'
"""
