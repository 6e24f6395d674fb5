from __future__ import annotations


class RecallBenchError(Exception):
    """Base exception for benchmark harness errors."""

    def __init__(self, message: str, *, stage: str | None = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"{self.stage}: {message}"
        return message


class FormatError(RecallBenchError):
    """Vector file is unreadable or does not follow the record layout."""


class SchemaError(RecallBenchError):
    """Backend rejected collection or index creation."""


class RowError(RecallBenchError):
    """A single insert or query failed; the run continues."""


class DimensionMismatchError(RecallBenchError):
    """Dataset shape does not pair with the configured dimension or query set."""


__all__ = [
    "DimensionMismatchError",
    "FormatError",
    "RecallBenchError",
    "RowError",
    "SchemaError",
]
