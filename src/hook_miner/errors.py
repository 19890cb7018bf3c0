class InputFormatError(ValueError):
    """Raised when a hex/bytes input has the wrong encoding or width."""


class FlagParseError(ValueError):
    """Raised when a flag name or mask literal cannot be understood."""


class RemoteMiningError(RuntimeError):
    """Raised when the mining API returns an error or cannot be reached."""


class ConfigurationError(RuntimeError):
    """Raised when an environment setting cannot be used."""
