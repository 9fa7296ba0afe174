"""Custom exceptions for SkillBuilder."""

from typing import Any


class SkillBuilderError(Exception):
    """Base exception for all SkillBuilder errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}


class ConfigError(SkillBuilderError):
    """Raised when skillbuilder.json is missing or invalid."""


class SourceError(SkillBuilderError):
    """Raised when a single documentation source cannot be resolved."""


class FetchTimeoutError(SourceError):
    """Raised when fetching a URL source exceeds its timeout."""


class CacheError(SkillBuilderError):
    """Raised when the source cache cannot be written."""


class MergeError(SkillBuilderError):
    """Raised when a target file cannot be read or written."""


class WatchError(SkillBuilderError):
    """Raised when filesystem watching cannot be started."""
