"""Client for the oaDOI (Unpaywall) v2 API."""

from __future__ import annotations

import logging

import requests
from pydantic import ValidationError

from .http_client import HttpClient
from .models import EnrichmentResult, ResponseBody
from .record_parser import summarise_validation_error

LOGGER = logging.getLogger(__name__)

API_URL = "https://api.oadoi.org/v2/"

# Resolver prefixes removed from identifiers before the lookup.  The export
# historically stores DOIs as ``http://dx.doi.org/...`` links.
DOI_URL_PREFIXES: tuple[str, ...] = (
    "http://dx.doi.org/",
    "https://dx.doi.org/",
    "http://doi.org/",
    "https://doi.org/",
)


def clean_doi(identifier: str) -> str:
    """Strip a known resolver prefix from ``identifier``.

    >>> clean_doi("http://dx.doi.org/10.1000/xyz")
    '10.1000/xyz'
    """

    for prefix in DOI_URL_PREFIXES:
        if identifier.startswith(prefix):
            return identifier[len(prefix) :]
    return identifier


def build_lookup_url(identifier: str, email: str, *, base_url: str = API_URL) -> str:
    """Return the lookup URL for ``identifier``.

    The cleaned DOI is appended to ``base_url`` verbatim, followed by the
    mandatory ``email`` query parameter.
    """

    return f"{base_url}{clean_doi(identifier)}?email={email}"


def _status_line(response: requests.Response) -> str:
    reason = (response.reason or "").strip()
    return f"{response.status_code} {reason}".strip()


class OadoiClient:
    """Look up open access metadata for one DOI at a time.

    Parameters
    ----------
    email:
        Contact address passed to the API as the ``email`` query parameter.
    base_url:
        API endpoint the cleaned DOI is appended to.
    http:
        Shared :class:`HttpClient`; a private one is created when omitted.
    timeout:
        Timeout for the private client.  Ignored when ``http`` is provided.
    """

    def __init__(
        self,
        email: str,
        *,
        base_url: str = API_URL,
        http: HttpClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.email = email
        self.base_url = base_url
        self.http = http if http is not None else HttpClient(timeout=timeout)

    def lookup(self, identifier: str) -> EnrichmentResult:
        """Perform exactly one API call for ``identifier``.

        Network failures and undecodable payloads are reported through the
        returned :class:`EnrichmentResult` rather than raised.
        """

        url = build_lookup_url(identifier, self.email, base_url=self.base_url)
        LOGGER.debug("Requesting oaDOI for %s: %s", identifier, url)
        try:
            resp = self.http.get(url)
        except requests.RequestException as exc:
            LOGGER.warning("oaDOI request failed for %s: %s", identifier, exc)
            return EnrichmentResult.from_transport_error(str(exc))

        with resp:
            status = _status_line(resp)
            try:
                body = ResponseBody.model_validate_json(resp.content)
            except ValidationError as exc:
                msg = summarise_validation_error(exc)
                LOGGER.warning(
                    "oaDOI response for %s could not be decoded (%s): %s",
                    identifier,
                    status,
                    msg,
                )
                return EnrichmentResult.from_decode_error(status, msg)
            except requests.RequestException as exc:
                # Reading the body can still fail once headers were received.
                msg = f"Error reading response body: {exc}"
                LOGGER.warning("oaDOI response for %s was truncated: %s", identifier, exc)
                return EnrichmentResult.from_decode_error(status, msg)

        return EnrichmentResult(http_status=status, body=body)

    def close(self) -> None:
        self.http.close()


__all__ = [
    "API_URL",
    "DOI_URL_PREFIXES",
    "OadoiClient",
    "build_lookup_url",
    "clean_doi",
]
