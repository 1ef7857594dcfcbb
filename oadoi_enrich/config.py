"""Configuration model for the enrichment pipeline.

Settings are resolved in three layers: an optional YAML file holding an
``enrichment`` section, environment variables following the
``OADOI_ENRICH__<KEY>`` convention, and finally command line flags.  The
resulting :class:`EnrichmentConfig` is passed explicitly to the client and
the pipeline; nothing reads configuration from global state.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .admission import DEFAULT_CAPACITY
from .oadoi_client import API_URL

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "OADOI_ENRICH__"
DEFAULT_SECTION = "enrichment"
DEFAULT_INPUT_GLOB = "*Publication-export.json"
DEFAULT_WORKERS_PER_PERMIT = 4


class ConfigError(ValueError):
    """Raised when configuration is missing or invalid."""


class EnrichmentConfig(BaseModel):
    """Validated settings of an enrichment run.

    Attributes
    ----------
    email:
        Contact address required by the oaDOI API.  Optional at this level so
        that it can be supplied by any layer; the CLI enforces its presence.
    concurrency:
        Maximum number of lookups in flight per input file.
    base_url:
        oaDOI endpoint the DOI is appended to.
    timeout:
        Per-request timeout in seconds.  ``None`` waits indefinitely.
    workers:
        Size of the thread pool running dispatch units.  Defaults to four
        threads per permit and is never smaller than ``concurrency``.
    file_workers:
        Number of input files processed concurrently.
    queue_size:
        Capacity of the results channel; ``0`` means unbounded.
    input_glob:
        Pattern used to discover input files when none are given.
    """

    model_config = ConfigDict(extra="forbid")

    email: str | None = None
    concurrency: int = Field(default=DEFAULT_CAPACITY, ge=1)
    base_url: str = API_URL
    timeout: float | None = Field(default=None, gt=0)
    workers: int | None = Field(default=None, ge=1)
    file_workers: int = Field(default=1, ge=1)
    queue_size: int = Field(default=0, ge=0)
    input_glob: str = Field(default=DEFAULT_INPUT_GLOB, min_length=1)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str | None) -> str | None:
        """Ensure the optional email address is well formed."""

        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            return None
        if cleaned.count("@") != 1:
            msg = "Email address must contain exactly one '@'"
            raise ValueError(msg)
        local_part, domain = cleaned.split("@", 1)
        if not local_part or not domain or "." not in domain:
            msg = "Email address must include a domain"
            raise ValueError(msg)
        return cleaned

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned.startswith(("http://", "https://")):
            msg = "base_url must be an http(s) URL"
            raise ValueError(msg)
        return cleaned if cleaned.endswith("/") else f"{cleaned}/"

    @property
    def effective_workers(self) -> int:
        """Return the dispatch pool size honouring the concurrency floor."""

        if self.workers is None:
            return self.concurrency * DEFAULT_WORKERS_PER_PERMIT
        return max(self.workers, self.concurrency)

    def with_overrides(self, **overrides: Any) -> "EnrichmentConfig":
        """Return a copy updated with every override that is not ``None``."""

        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return _validate(data, origin="command line")


def _validate(data: Mapping[str, Any], *, origin: str) -> EnrichmentConfig:
    try:
        return EnrichmentConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration from {origin}: {exc}") from exc


def _apply_env_overrides(
    data: Dict[str, Any], *, environ: Mapping[str, str] | None = None
) -> Dict[str, Any]:
    """Update ``data`` with ``OADOI_ENRICH__<KEY>`` environment variables.

    Values are parsed with :func:`yaml.safe_load` so that numbers and
    ``null`` keep their type, e.g. ``OADOI_ENRICH__CONCURRENCY=10``.
    """

    source = os.environ if environ is None else environ
    for raw_key, raw_value in source.items():
        if not raw_key.startswith(ENV_PREFIX):
            continue
        key = raw_key[len(ENV_PREFIX) :].lower()
        if not key:
            continue
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        if key == "email" and value is not None:
            value = str(value)
        LOGGER.debug("Applying environment override for %s", key)
        data[key] = value
    return data


def load_config(
    path: str | Path | None = None,
    *,
    section: str = DEFAULT_SECTION,
    apply_env: bool = True,
    environ: Mapping[str, str] | None = None,
) -> EnrichmentConfig:
    """Load the enrichment configuration.

    Parameters
    ----------
    path:
        Optional YAML file with a top-level ``section`` mapping.  When
        ``None`` only defaults and environment overrides are used.
    section:
        Name of the mapping holding the enrichment settings.
    apply_env:
        Whether ``OADOI_ENRICH__`` environment variables are applied.
    environ:
        Environment mapping to read instead of :data:`os.environ`.

    Raises
    ------
    ConfigError
        If the file cannot be read, is not valid YAML, lacks ``section`` or
        holds invalid values.
    """

    data: Dict[str, Any] = {}
    origin = "defaults"
    if path is not None:
        config_path = Path(path).expanduser()
        origin = str(config_path)
        try:
            content = config_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read configuration {config_path}: {exc}") from exc
        try:
            loaded = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(loaded, Mapping):
            raise ConfigError(f"Configuration root must be a mapping in {config_path}")
        section_data = loaded.get(section)
        if section_data is None:
            raise ConfigError(f"Missing '{section}' section in {config_path}")
        if not isinstance(section_data, Mapping):
            raise ConfigError(f"Section '{section}' must be a mapping in {config_path}")
        data.update(section_data)
        LOGGER.debug("Loaded configuration from %s", config_path)

    if apply_env:
        _apply_env_overrides(data, environ=environ)
    return _validate(data, origin=origin)


__all__ = [
    "ConfigError",
    "DEFAULT_INPUT_GLOB",
    "EnrichmentConfig",
    "ENV_PREFIX",
    "load_config",
]
