from __future__ import annotations

from typing import Callable, Sequence
from uuid import uuid4

from tidyscan.contacts.phone import normalize_phone
from tidyscan.contacts.types import ContactRecord

_SCALAR_FIELDS = (
    "given_name",
    "family_name",
    "middle_name",
    "nickname",
    "organization_name",
    "department_name",
    "job_title",
    "note",
)


def _longest_value(values: Sequence[str]) -> str:
    best = ""
    for value in values:
        candidate = (value or "").strip()
        if len(candidate) > len(best):
            best = candidate
    return best


def _folded_key(value: str) -> str:
    return " ".join(value.split()).casefold()


def _dedupe(values: Sequence[str], key: Callable[[str], str]) -> tuple[str, ...]:
    seen: set[str] = set()
    kept: list[str] = []
    for value in values:
        candidate = (value or "").strip()
        if not candidate:
            continue
        token = key(candidate)
        if token in seen:
            continue
        seen.add(token)
        kept.append(candidate)
    return tuple(kept)


def _dedupe_phones(values: Sequence[str]) -> tuple[str, ...]:
    # One entry per normalized number, keeping the longest formatting seen.
    order: list[str] = []
    chosen: dict[str, str] = {}
    for value in values:
        candidate = (value or "").strip()
        if not candidate:
            continue
        token = normalize_phone(candidate) or candidate
        current = chosen.get(token)
        if current is None:
            order.append(token)
            chosen[token] = candidate
        elif len(candidate) > len(current):
            chosen[token] = candidate
    return tuple(chosen[token] for token in order)


def merge_contacts(contacts: Sequence[ContactRecord], *, merged_id: str | None = None) -> ContactRecord | None:
    """Combine duplicate records into one new record.

    Scalar fields take the longest non-empty value (earliest input wins a
    tie). Multi-valued fields are unioned and deduplicated per type. Birthday
    and image take the first value present. Fewer than two inputs is a
    no-op: the sole record is returned unchanged, or ``None`` for no input.
    Deleting the originals and persisting the result is up to the caller.
    """
    if not contacts:
        return None
    if len(contacts) < 2:
        return contacts[0]

    scalars = {name: _longest_value([getattr(contact, name) for contact in contacts]) for name in _SCALAR_FIELDS}

    def gather(name: str) -> list[str]:
        return [value for contact in contacts for value in getattr(contact, name)]

    birthday = next((contact.birthday for contact in contacts if contact.birthday is not None), None)
    image_data = next((contact.image_data for contact in contacts if contact.image_data is not None), None)

    return ContactRecord(
        id=merged_id or str(uuid4()),
        phone_numbers=_dedupe_phones(gather("phone_numbers")),
        email_addresses=_dedupe(gather("email_addresses"), key=str.casefold),
        postal_addresses=_dedupe(gather("postal_addresses"), key=_folded_key),
        url_addresses=_dedupe(gather("url_addresses"), key=str.casefold),
        social_profiles=_dedupe(gather("social_profiles"), key=str.casefold),
        birthday=birthday,
        image_data=image_data,
        **scalars,
    )
