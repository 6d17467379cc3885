"""Registration-code normalization used for duplicate detection."""
from __future__ import annotations

import pytest

from rollcall.checkin.identity import normalize


@pytest.mark.parametrize(
    "variant",
    ["AB-123", "ab 123", "  Ab123  ", "a.b/1_2-3", "AB\t 123", "ＡＢ１２３"],
)
def test_formatting_variants_collapse_to_same_key(variant: str) -> None:
    assert normalize(variant) == "ab123"


def test_dashed_and_plain_codes_collide() -> None:
    assert normalize("A-1") == normalize("a1") == "a1"


def test_distinct_codes_stay_distinct() -> None:
    assert normalize("A-1") != normalize("A-2")


def test_non_ascii_letters_are_dropped() -> None:
    # Accented letters are not ASCII alphanumerics once lowercased.
    assert normalize("José 42") == "jos42"


def test_punctuation_only_normalizes_to_empty() -> None:
    assert normalize(" -- ") == ""


def test_numeric_input_is_stringified() -> None:
    assert normalize(20231234) == "20231234"


def test_idempotent() -> None:
    once = normalize("RGM: 12.345-6")
    assert normalize(once) == once
