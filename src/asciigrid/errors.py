class AsciiGridError(Exception):
    """Base class for every error raised by asciigrid."""


class FontLoadError(AsciiGridError):
    """A font source is missing, malformed, or cannot cover the requested alphabet."""


class UnknownMetricError(AsciiGridError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


class EmptyImageError(AsciiGridError, ValueError):
    """The source frame has zero area."""


class InvalidConfigurationError(AsciiGridError, ValueError):
    pass


class InvalidThreadCountError(InvalidConfigurationError):
    pass
