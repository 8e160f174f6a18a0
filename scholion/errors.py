"""Error definitions and warning records for the Scholion reader."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional


class ErrorCategory(Enum):
    """Categorises recoverable problems reported through the warning policy."""

    RANGE = auto()
    MARKUP = auto()


class ScholionError(Exception):
    """Base exception for all custom errors."""


class ProviderConfigurationError(ScholionError):
    """Raised when the text provider or configuration is invalid."""


class TextProviderError(ScholionError):
    """Raised when the text provider fails (request rejected or non-success status)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TextNotFoundError(TextProviderError):
    """Raised when the provider has no text for the requested id and language."""


class ProviderResponseError(TextProviderError):
    """Raised when a provider payload is missing fields or has the wrong shape."""


@dataclass
class ErrorRecord:
    """Stores context for a handled warning."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None


class ErrorTracker:
    """Counts warnings per category so callers can summarise them."""

    def __init__(self) -> None:
        self.counts: Dict[ErrorCategory, int] = {}
        self.total: int = 0

    def register(self, category: ErrorCategory) -> int:
        """Register a new warning and return the count for its category."""

        self.counts[category] = self.counts.get(category, 0) + 1
        self.total += 1
        return self.counts[category]
