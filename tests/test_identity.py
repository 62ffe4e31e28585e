from __future__ import annotations

import pytest

from attendsync.identity import is_valid_identifier, normalize_identifier, normalize_identifiers


def test_normalize_is_case_and_whitespace_insensitive() -> None:
    assert normalize_identifier(" a1 ") == normalize_identifier("A1") == "A1"


@pytest.mark.parametrize("raw", ["a1", "  Mixed-Case ", "\tx9\n", "ALREADY", ""])
def test_normalize_is_idempotent(raw: str) -> None:
    once = normalize_identifier(raw)
    assert normalize_identifier(once) == once


def test_normalize_none_and_non_strings() -> None:
    assert normalize_identifier(None) == ""
    assert normalize_identifier(12345) == "12345"
    assert not is_valid_identifier("   ")
    assert is_valid_identifier(" b2")


def test_normalize_identifiers_drops_blanks_and_duplicates_keeping_order() -> None:
    assert normalize_identifiers(["b2", " a1", "B2", "", "a1 ", "c3"]) == ["B2", "A1", "C3"]
