from __future__ import annotations

import pytest

from statement_extraction.cards import (
    DEFAULT_DIRECTORY,
    UNASSIGNED,
    CardDirectory,
    account_key,
    extract_last4,
    unknown_label,
)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("*XXXX-XXXX-XXXX-1234", "1234"),
        ("XXXX-XXXX-XXXX-5456", "5456"),
        ("Card ending in 0082", "0082"),
        ("Card ending in 1234.", "1234"),
        ("(ending in 4216)", "4216"),
        ("last 4 digits 5456, Allia Klipp", "5456"),
        ("...1785", "1785"),
        ("0166", "0166"),
        ("no digits here", None),
        (None, None),
    ],
)
def test_extract_last4(text, expected):
    assert extract_last4(text) == expected


def test_resolve_known_and_unknown_cards():
    assert DEFAULT_DIRECTORY.resolve("5456") == "Allia Klipp"
    assert DEFAULT_DIRECTORY.resolve("0082") == "Landon Hamel"
    assert DEFAULT_DIRECTORY.resolve("9999") is None
    assert DEFAULT_DIRECTORY.resolve(None) is None
    assert DEFAULT_DIRECTORY.resolve_text("Card ending in 4216") == "Alexis Rosenthal"


def test_exclusion_is_a_conjunction():
    d = DEFAULT_DIRECTORY
    assert d.is_excluded_account("1785", "Payment - Auto Payment Deduction")
    assert d.is_excluded_account("1785", "PAYMENT - AUTO PAYMENT DEDUCTION 04/22")
    # Account alone or description alone is not enough.
    assert not d.is_excluded_account("1785", "ANNUAL CARD FEE")
    assert not d.is_excluded_account("5456", "Payment - Auto Payment Deduction")
    assert not d.is_excluded_account(None, "Payment - Auto Payment Deduction")


def test_system_representative_and_reverse_lookup():
    d = DEFAULT_DIRECTORY
    assert d.is_system_representative("Hemisphere Trading O")
    assert not d.is_system_representative("Allia Klipp")
    assert d.card_for("landon hamel") == "0082"
    assert d.card_for("Nobody") is None


def test_representatives_table_excludes_system_account():
    reps = list(DEFAULT_DIRECTORY.representatives())
    assert ("1785", "Hemisphere Trading O") not in reps
    assert ("5456", "Allia Klipp") in reps
    assert [name for _, name in reps] == sorted(name for _, name in reps)


def test_custom_directory_and_labels():
    d = CardDirectory(cards={"1111": "Test Rep"}, excluded_accounts=frozenset())
    assert d.resolve("1111") == "Test Rep"
    assert unknown_label("2222") == "Desconocido (2222)"
    assert unknown_label(None) == UNASSIGNED
    assert account_key("XXXX-XXXX-XXXX-2222") == "2222"
    assert account_key("  corporate  ") == "corporate"
