"""Tests for parse_image_reference.

Covers the documented examples plus hypothesis properties for the three
reference shapes: tag references, digest references and bare names.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from imagereloader.index.reference import parse_image_reference

# ---------------------------------------------------------------------------
# Examples
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("reference", "expected"),
    [
        ("nginx:1.14.2", ("nginx", "1.14.2")),
        ("registry:5000/ns/app:1.2.3", ("registry:5000/ns/app", "1.2.3")),
        ("repo/app@sha256:abcd", ("repo/app", "sha256:abcd")),
        ("repo/app@deadbeef", ("repo/app", "deadbeef")),
        ("hub.harbor.com/test-webhook/debian:latest", ("hub.harbor.com/test-webhook/debian", "latest")),
        ("nginx", ("nginx", "")),
        ("", ("", "")),
        ("nginx:", ("nginx", "")),
    ],
)
def test_examples(reference: str, expected: tuple[str, str]) -> None:
    assert parse_image_reference(reference) == expected


def test_colon_before_at_splits_on_last_colon() -> None:
    # A registry port makes ':' come first even in a digest reference
    assert parse_image_reference("registry:5000/app@sha256:abcd") == ("registry:5000/app@sha256", "abcd")


def test_port_digest_reference_never_matches_a_tag_push() -> None:
    pinned_name, _ = parse_image_reference("registry:5000/app@sha256:abcd")
    pushed_name, _ = parse_image_reference("registry:5000/app:1.2.3")
    assert pinned_name != pushed_name


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

_segment = st.text(alphabet=st.characters(exclude_characters=":@", exclude_categories=("Cs",)), max_size=30)


@given(parts=st.lists(_segment, min_size=2, max_size=5))
@settings(max_examples=200)
def test_colon_references_split_at_last_colon(parts: list[str]) -> None:
    reference = ":".join(parts)
    name, tag = parse_image_reference(reference)
    assert tag == parts[-1]
    assert name == ":".join(parts[:-1])
    assert f"{name}:{tag}" == reference


@given(name=_segment.filter(bool), digest=st.lists(_segment, min_size=1, max_size=3))
@settings(max_examples=200)
def test_at_first_references_split_at_last_at(name: str, digest: list[str]) -> None:
    reference = f"{name}@{':'.join(digest)}"
    parsed_name, tag = parse_image_reference(reference)
    assert parsed_name == name
    assert tag == ":".join(digest)


@given(reference=_segment)
def test_references_without_separators_have_empty_tag(reference: str) -> None:
    assert parse_image_reference(reference) == (reference, "")


@given(reference=st.text(max_size=80))
def test_parse_is_total(reference: str) -> None:
    name, tag = parse_image_reference(reference)
    assert isinstance(name, str)
    assert isinstance(tag, str)
    assert len(name) + len(tag) <= len(reference)
