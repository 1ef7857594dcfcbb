from __future__ import annotations

import io
import json
import logging
import sys
from typing import Any, cast

import pytest

from oadoi_enrich.logging_utils import configure_logging


def test_json_logging_redacts_contact_email(monkeypatch: pytest.MonkeyPatch) -> None:
    """``configure_logging`` emits JSON and hides the email query value."""

    stream = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stream)

    configure_logging("DEBUG", log_format="json")
    logging.getLogger("test").debug(
        "GET %s",
        "https://api.oadoi.org/v2/10.1/x?email=team@example.org",
        extra={"api_key": "dont_show", "context": {"password": "value"}},
    )

    data = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert data["message"] == "GET https://api.oadoi.org/v2/10.1/x?email=***"
    assert data["level"] == "DEBUG"
    assert data["logger"] == "test"
    assert data["extra"]["api_key"] == "***"
    assert data["extra"]["context"]["password"] == "***"


def test_human_logging_writes_to_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stream)

    configure_logging("INFO")
    logging.getLogger("test").info("hello %s", "world")
    logging.getLogger("test").debug("hidden")

    output = stream.getvalue()
    assert "INFO" in output
    assert "hello world" in output
    assert "hidden" not in output


def test_configure_logging_rejects_unknown_values() -> None:
    with pytest.raises(ValueError):
        configure_logging("INFO", log_format=cast(Any, "xml"))
    with pytest.raises(ValueError):
        configure_logging("LOUD")
