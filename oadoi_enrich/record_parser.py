"""Decode single lines of a publication export into :class:`InputRecord`."""

from __future__ import annotations

from pydantic import ValidationError

from .models import InputRecord

_MAX_REPORTED_ERRORS = 3


class RecordParseError(ValueError):
    """Raised when a line cannot be decoded into an :class:`InputRecord`."""


def summarise_validation_error(exc: ValidationError) -> str:
    """Return a single-line description of ``exc`` suitable for logs and CSV."""

    parts: list[str] = []
    for error in exc.errors()[:_MAX_REPORTED_ERRORS]:
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    remaining = exc.error_count() - len(parts)
    if remaining > 0:
        parts.append(f"... and {remaining} more")
    return "; ".join(parts)


def parse_record(line: bytes | str) -> InputRecord:
    """Parse one newline-delimited JSON publication.

    Parameters
    ----------
    line:
        Raw bytes (or text) of a single line.  Surrounding whitespace,
        including the trailing newline, is ignored.

    Returns
    -------
    InputRecord
        The decoded record.  Keys unknown to the model are ignored.

    Raises
    ------
    RecordParseError
        If the line is not valid JSON, is not a JSON object or holds a value
        of the wrong type for a known field.
    """

    try:
        return InputRecord.model_validate_json(line)
    except ValidationError as exc:
        raise RecordParseError(summarise_validation_error(exc)) from exc


__all__ = ["RecordParseError", "parse_record", "summarise_validation_error"]
