from __future__ import annotations

import re
from dataclasses import dataclass

_NON_DIGITS = re.compile(r"\D+")

DEFAULT_MIN_MATCH_DIGITS = 6


@dataclass(frozen=True)
class _PhoneRule:
    country: str
    lengths: frozenset[int]
    prefixes: tuple[str, ...]
    drop: int = 0
    prepend: str = ""

    def matches(self, digits: str) -> bool:
        return len(digits) in self.lengths and digits.startswith(self.prefixes)

    def apply(self, digits: str) -> str:
        return self.prepend + digits[self.drop :]


def _rule(country: str, lengths: tuple[int, ...], prefixes: tuple[str, ...], drop: int = 0, prepend: str = "") -> _PhoneRule:
    return _PhoneRule(country=country, lengths=frozenset(lengths), prefixes=prefixes, drop=drop, prepend=prepend)


_NANP_AREA_LEAD = tuple("23456789")

# First match wins. Every rewrite produces a form accepted unchanged by an
# earlier-or-same country rule, which keeps normalize_phone idempotent.
_RULES: tuple[_PhoneRule, ...] = (
    _rule("nanp", (11,), tuple(f"1{lead}" for lead in _NANP_AREA_LEAD)),
    _rule("nanp", (10,), _NANP_AREA_LEAD, prepend="1"),
    _rule("ru", (11,), ("7",)),
    _rule("ru", (11,), ("83", "84", "88", "89"), drop=1, prepend="7"),
    _rule("jp", (11, 12), ("81",)),
    _rule("jp", (11,), ("070", "080", "090"), drop=1, prepend="81"),
    _rule("jp", (10,), ("0",), drop=1, prepend="81"),
    _rule("gb", (12,), ("44",)),
    _rule("gb", (11,), ("01", "02", "03", "07"), drop=1, prepend="44"),
    _rule("br", (12, 13), ("55",)),
    # Takes every 11 or 12 digit national form left over by the rules above.
    _rule("br", (11, 12), ("0",), drop=1, prepend="55"),
    _rule("de", (12, 13), ("49",)),
    _rule("cn", (12, 13), ("86",)),
    _rule("in", (12,), ("91",)),
)


def digits_only(raw: str) -> str:
    return _NON_DIGITS.sub("", raw or "")


def _strip_international_prefix(digits: str) -> str:
    if digits.startswith("00"):
        return digits.lstrip("0")
    return digits


def _first_rule(digits: str) -> _PhoneRule | None:
    for rule in _RULES:
        if rule.matches(digits):
            return rule
    return None


def normalize_phone(raw: str) -> str:
    """Canonical digit string for equality comparison of phone numbers.

    Non-digits are stripped and a leading ``00`` international prefix is
    removed. The first matching country rule then rewrites national forms
    into ``<country code><national number>``. Unmatched input is returned as
    the cleaned digit string.
    """
    digits = _strip_international_prefix(digits_only(raw))
    rule = _first_rule(digits)
    return rule.apply(digits) if rule is not None else digits


def matching_country(raw: str) -> str | None:
    rule = _first_rule(_strip_international_prefix(digits_only(raw)))
    return rule.country if rule is not None else None


def is_same_number(a: str, b: str, *, min_digits: int = DEFAULT_MIN_MATCH_DIGITS) -> bool:
    left = normalize_phone(a)
    if len(left) < min_digits:
        return False
    return left == normalize_phone(b)


class PhoneNormalizer:
    def __init__(self, min_digits: int = DEFAULT_MIN_MATCH_DIGITS):
        self._min_digits = min_digits

    def normalize(self, raw: str) -> str:
        return normalize_phone(raw)

    def match_key(self, raw: str) -> str | None:
        normalized = normalize_phone(raw)
        if len(normalized) < self._min_digits:
            return None
        return normalized

    def is_same_number(self, a: str, b: str) -> bool:
        return is_same_number(a, b, min_digits=self._min_digits)
