"""Data model for publication records and oaDOI lookup results.

Input records and API payloads are decoded with Pydantic models using strict
field types so that a value of the wrong JSON type is reported as an error
instead of being coerced.  Missing keys and explicit ``null`` values collapse
to the empty value of the field (``""``, ``False``, ``0`` or an empty
collection) which keeps downstream CSV serialisation free of ``None`` checks.

Lookup outcomes and enriched records are plain frozen dataclasses; they are
created once by a dispatch unit and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
)

DOI_SCHEME = "doi"


def _empty_if_none(value: Any, empty: Any) -> Any:
    return empty if value is None else value


class Identifier(BaseModel):
    """A ``(scheme, value)`` identifier pair attached to a publication."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    scheme: StrictStr = ""
    value: StrictStr = ""

    @field_validator("scheme", "value", mode="before")
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return _empty_if_none(value, "")


class Attachment(BaseModel):
    """File attachment descriptor as exported by the repository."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    open_access: StrictStr = ""
    blob_key: StrictStr = ""
    external_url: Any = None
    type: StrictStr = ""

    @field_validator("open_access", "blob_key", "type", mode="before")
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return _empty_if_none(value, "")

    @property
    def is_open_access(self) -> bool:
        """Return ``True`` when the attachment is flagged as open access.

        The export encodes the flag as the literal string ``"true"``; any other
        value, including ``"True"``, counts as closed.
        """

        return self.open_access == "true"


class InputRecord(BaseModel):
    """One publication parsed from a line of the input export."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: StrictStr = Field(default="", alias="__id__")
    type: StrictStr = ""
    identifier: Tuple[Identifier, ...] = ()
    attachment: Tuple[Attachment, ...] = ()

    @field_validator("id", "type", mode="before")
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return _empty_if_none(value, "")

    @field_validator("identifier", "attachment", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return _empty_if_none(value, ())

    def doi_values(self) -> list[str]:
        """Return DOI identifier values in the order they appear."""

        return [item.value for item in self.identifier if item.scheme == DOI_SCHEME]


class BestOaLocation(BaseModel):
    """The ``best_oa_location`` object of an oaDOI response."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    evidence: StrictStr = ""
    host_type: StrictStr = ""
    id: StrictStr = ""
    url: StrictStr = ""
    url_for_landing_page: StrictStr = ""
    url_for_pdf: StrictStr = ""
    version: StrictStr = ""

    @field_validator("*", mode="before")
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return _empty_if_none(value, "")


class ResponseBody(BaseModel):
    """Decoded oaDOI payload for a single DOI."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    best_oa_location: BestOaLocation = Field(default_factory=BestOaLocation)
    data_standard: StrictInt = 0
    doi: StrictStr = ""
    doi_url: StrictStr = ""
    is_oa: StrictBool = False
    journal_is_oa: StrictBool = False
    journal_issns: StrictStr = ""
    journal_name: StrictStr = ""
    publisher: StrictStr = ""
    title: StrictStr = ""
    updated: StrictStr = ""
    year: StrictInt = 0

    @field_validator(
        "doi",
        "doi_url",
        "journal_issns",
        "journal_name",
        "publisher",
        "title",
        "updated",
        mode="before",
    )
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return _empty_if_none(value, "")

    @field_validator("is_oa", "journal_is_oa", mode="before")
    @classmethod
    def _null_bool(cls, value: Any) -> Any:
        return _empty_if_none(value, False)

    @field_validator("data_standard", "year", mode="before")
    @classmethod
    def _null_int(cls, value: Any) -> Any:
        return _empty_if_none(value, 0)

    @field_validator("best_oa_location", mode="before")
    @classmethod
    def _null_location(cls, value: Any) -> Any:
        return _empty_if_none(value, {})


@dataclass(frozen=True)
class EnrichmentResult:
    """Outcome of one oaDOI lookup.

    At most one of ``transport_error`` and ``decode_error`` is populated.  A
    transport failure leaves every other field empty; a decode failure keeps
    the HTTP status line so the response can still be audited.
    """

    http_status: str = ""
    body: ResponseBody = field(default_factory=ResponseBody)
    decode_error: str = ""
    transport_error: str = ""

    @classmethod
    def from_transport_error(cls, message: str) -> "EnrichmentResult":
        return cls(transport_error=message)

    @classmethod
    def from_decode_error(cls, http_status: str, message: str) -> "EnrichmentResult":
        return cls(http_status=http_status, decode_error=message)

    @property
    def ok(self) -> bool:
        return not (self.decode_error or self.transport_error)


@dataclass(frozen=True)
class EnrichedRecord:
    """An input record together with one lookup result per DOI identifier."""

    record: InputRecord
    results: Tuple[EnrichmentResult, ...] = ()


__all__ = [
    "Attachment",
    "BestOaLocation",
    "DOI_SCHEME",
    "EnrichedRecord",
    "EnrichmentResult",
    "Identifier",
    "InputRecord",
    "ResponseBody",
]
