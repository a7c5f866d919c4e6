class LogWeaverError(Exception):
    """Base class for startup failures that abort a run."""


class PatternCompileError(LogWeaverError, ValueError):
    pass


class ConfigError(LogWeaverError):
    pass


class SourceReadError(OSError):
    """An input log file could not be opened or read."""


class OpenError(SourceReadError):
    pass


class DecompressionError(SourceReadError):
    pass


class SchedulingError(RuntimeError):
    pass
