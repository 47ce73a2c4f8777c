"""Custom exceptions for commitwatch."""


class CommitWatchError(Exception):
    """Base exception for all commitwatch errors."""


class ConfigError(CommitWatchError):
    """Raised when the config file or environment is missing a required value."""


class WatermarkError(CommitWatchError):
    """Raised when the stored watermark cannot be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid watermark file {path}: {reason}")
