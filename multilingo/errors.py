"""Error definitions for the Multilingo translation engine."""

from __future__ import annotations

from enum import Enum, auto


class ErrorCategory(Enum):
    """Categorises engine failures so callers can report them consistently."""

    NETWORK = auto()
    TIMEOUT = auto()
    HTTP_STATUS = auto()
    BACKEND = auto()
    MALFORMED = auto()
    OTHER = auto()


class MultilingoError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(MultilingoError):
    """Raised when a batch cannot start because configuration is missing or invalid."""


class UnknownLanguageError(MultilingoError):
    """Raised when a language code is not part of the catalog."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Unknown language code '{code}'.")
        self.code = code


class EngineError(MultilingoError):
    """A normalised failure of a single engine call."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.OTHER) -> None:
        super().__init__(message)
        self.message = message
        self.category = category


class DetectionError(EngineError):
    """Raised when the source locale could not be detected."""


class TranslationError(EngineError):
    """Raised when one translation call fails."""
