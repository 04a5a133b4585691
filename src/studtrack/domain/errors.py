from __future__ import annotations


class NormalizationError(ValueError):
    """Raised when a raw meeting record cannot be turned into a Meeting."""

    def __init__(self, message: str, *, meeting_id: str | None = None, field: str | None = None) -> None:
        self.meeting_id = meeting_id
        self.field = field
        location = []
        if meeting_id is not None:
            location.append(f"meeting '{meeting_id}'")
        if field:
            location.append(f"field '{field}'")
        prefix = f"{', '.join(location)}: " if location else ""
        super().__init__(f"{prefix}{message}")


class ParseError(NormalizationError):
    """A value is present but cannot be parsed (timestamps, minute counters, JSON)."""


class SchemaError(NormalizationError):
    """A required field is missing or a record has the wrong shape."""


class UnknownScopeError(LookupError):
    """Raised when a scope selector matches no meeting in the batch."""


class ReportWriteError(OSError):
    """Raised when the report artifact cannot be written."""
