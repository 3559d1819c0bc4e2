from __future__ import annotations

import pytest

from tidyscan.contacts.phone import PhoneNormalizer, is_same_number, matching_country, normalize_phone


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("+1 (212) 555-0100", "12125550100"),
        ("12125550100", "12125550100"),
        ("(212) 555-0100", "12125550100"),
        ("+7 916 123-45-67", "79161234567"),
        ("8 (916) 123-45-67", "79161234567"),
        ("+81 90-1234-5678", "819012345678"),
        ("090-1234-5678", "819012345678"),
        ("03-1234-5678", "81312345678"),
        ("+44 20 7946 0958", "442079460958"),
        ("020 7946 0958", "442079460958"),
        ("0044 20 7946 0958", "442079460958"),
        ("+49 151 23456789", "4915123456789"),
        ("0049 151 23456789", "4915123456789"),
        ("0151 23456789", "5515123456789"),
        ("+86 138 1234 5678", "8613812345678"),
        ("+91 98765 43210", "919876543210"),
        ("098765 43210", "559876543210"),
        ("+55 11 91234-5678", "5511912345678"),
        ("0 21 91234-5678", "5521912345678"),
        ("0 11 91234-5678", "5511912345678"),
        ("555-0100", "5550100"),
        ("", ""),
        ("ext.", ""),
    ],
)
def test_normalize_phone_known_formats(raw: str, expected: str) -> None:
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "+1 (212) 555-0100",
        "2125550100",
        "8 916 123 45 67",
        "090-1234-5678",
        "03-1234-5678",
        "020 7946 0958",
        "07700 900123",
        "0151 23456789",
        "0421 1234567",
        "098765 43210",
        "0 11 91234-5678",
        "0011 1234 5678",
        "000000",
        "0123",
        "123",
        "+86 10 1234 5678",
    ],
)
def test_normalize_phone_is_idempotent(raw: str) -> None:
    once = normalize_phone(raw)
    assert normalize_phone(once) == once


def test_rule_order_resolves_overlapping_national_forms() -> None:
    assert matching_country("090-1234-5678") == "jp"
    assert matching_country("07911 123456") == "gb"
    assert matching_country("0 21 91234-5678") == "br"
    assert matching_country("0 11 91234-5678") == "br"
    assert matching_country("0151 23456789") == "br"
    assert matching_country("+49 151 23456789") == "de"
    assert matching_country("+91 98765 43210") == "in"
    assert matching_country("555-0100") is None


def test_same_number_requires_minimum_length() -> None:
    assert is_same_number("+1 (212) 555-0100", "12125550100")
    assert not is_same_number("12345", "1-2-3-4-5")
    assert is_same_number("123456", "12-34-56")
    assert not is_same_number("+44 20 7946 0958", "+1 212 555 0100")
    assert is_same_number("+55 11 91234-5678", "0 11 91234-5678")


def test_phone_normalizer_match_key_respects_configured_length() -> None:
    normalizer = PhoneNormalizer(min_digits=8)
    assert normalizer.match_key("555-0100") is None
    assert normalizer.match_key("+1 (212) 555-0100") == "12125550100"
    assert normalizer.normalize("555-0100") == "5550100"
    assert normalizer.is_same_number("(212) 555-0100", "+1 212 555 0100")
