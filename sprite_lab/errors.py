"""Exception hierarchy shared by the describer, generators and configuration."""


class SpriteLabError(Exception):
    """Base class for errors raised by sprite-lab."""


class ConfigurationError(SpriteLabError):
    """Raised when a required credential or setting is missing or invalid."""


class UpstreamError(SpriteLabError):
    """Raised when the remote model call fails or returns no usable output."""


class MalformedResponseError(SpriteLabError):
    """Raised when the remote model answers with text that is not the expected JSON."""
