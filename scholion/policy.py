"""Warning policy for locally recovered problems."""

from __future__ import annotations

import sys
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord, ErrorTracker


class WarningPolicy:
    """Records recoverable problems and reports them without aborting work."""

    def __init__(self, *, quiet: bool = False) -> None:
        self.quiet = quiet
        self.records: List[ErrorRecord] = []
        self.tracker = ErrorTracker()

    def handle_warning(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> None:
        """Record a warning and print it unless the policy is quiet."""

        self.records.append(ErrorRecord(category=category, message=message, details=details))
        self.tracker.register(category)

        if not self.quiet:
            print(f"[scholion] {message}", file=sys.stderr)

    def messages(self, category: Optional[ErrorCategory] = None) -> List[str]:
        """Return recorded messages, optionally filtered by category."""

        return [
            record.message
            for record in self.records
            if category is None or record.category == category
        ]

    @property
    def total(self) -> int:
        return self.tracker.total
