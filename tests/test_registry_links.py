from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from oadoi_enrich.registry_links import SHERPA_ROMEO_URL, make_registry_link


@pytest.mark.parametrize(
    ("issns", "expected"),
    [
        ("", ""),
        ("1234-5678", SHERPA_ROMEO_URL + "1234-5678/"),
        ("12345678", SHERPA_ROMEO_URL + "1234-5678/"),
        (
            "12345678,abcd-efgh",
            SHERPA_ROMEO_URL + "1234-5678/," + SHERPA_ROMEO_URL + "abcd-efgh/",
        ),
    ],
)
def test_make_registry_link(issns: str, expected: str) -> None:
    assert make_registry_link(issns) == expected


_issn = st.text(alphabet="0123456789X", min_size=8, max_size=8)


@given(st.lists(_issn, min_size=1, max_size=4))
def test_each_segment_is_linked_independently(issns: list[str]) -> None:
    joined = make_registry_link(",".join(issns))

    assert joined.split(",") == [make_registry_link(issn) for issn in issns]
    for issn, link in zip(issns, joined.split(",")):
        assert link == f"{SHERPA_ROMEO_URL}{issn[:4]}-{issn[4:]}/"


@given(st.text(alphabet="0123456789-,X", max_size=30))
def test_make_registry_link_is_deterministic(issns: str) -> None:
    assert make_registry_link(issns) == make_registry_link(issns)
