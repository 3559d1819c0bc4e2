from __future__ import annotations

from collections import defaultdict
from typing import Callable, Collection, Iterable, Sequence

from tidyscan.contacts.phone import PhoneNormalizer
from tidyscan.contacts.types import (
    ContactDuplicateGroup,
    ContactMatchType,
    ContactRecord,
    ContactScanResult,
    ContactSimilarGroup,
)
from tidyscan.core.config import Settings
from tidyscan.core.edit_distance import distance


def _name_order(contact: ContactRecord) -> tuple[str, str]:
    return (contact.display_name.casefold(), contact.id)


class ContactMatcher:
    """Duplicate and similar-name clustering over an address-book snapshot.

    Duplicate keys are claimed in sorted order: phone numbers first, then
    e-mail addresses, then exact full names. A contact joins at most one
    duplicate group. Similar-name clustering is a greedy single pass: each
    unprocessed contact absorbs every later contact whose name is close to
    its own, so closeness is not applied transitively.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._phones = PhoneNormalizer(min_digits=settings.min_phone_digits)

    def _phone_keys(self, contact: ContactRecord) -> list[str]:
        keys = (self._phones.match_key(phone) for phone in contact.phone_numbers)
        return [key for key in keys if key]

    def _email_keys(self, contact: ContactRecord) -> list[str]:
        return [email.strip().casefold() for email in contact.email_addresses if email.strip()]

    def _name_keys(self, contact: ContactRecord) -> list[str]:
        name = " ".join(contact.full_name.split()).casefold()
        return [name] if name else []

    def _index(
        self,
        contacts: Iterable[ContactRecord],
        keys_for: Callable[[ContactRecord], list[str]],
    ) -> dict[str, dict[str, ContactRecord]]:
        index: dict[str, dict[str, ContactRecord]] = defaultdict(dict)
        for contact in contacts:
            for key in keys_for(contact):
                index[key].setdefault(contact.id, contact)
        return index

    def _claim_groups(
        self,
        contacts: Sequence[ContactRecord],
        match_type: ContactMatchType,
        keys_for: Callable[[ContactRecord], list[str]],
        claimed: set[str],
    ) -> list[ContactDuplicateGroup]:
        index = self._index((contact for contact in contacts if contact.id not in claimed), keys_for)
        groups: list[ContactDuplicateGroup] = []
        for key in sorted(index):
            members = [contact for contact_id, contact in index[key].items() if contact_id not in claimed]
            if len(members) < 2:
                continue
            claimed.update(contact.id for contact in members)
            groups.append(
                ContactDuplicateGroup(
                    id=f"{match_type.value}:{key}",
                    contacts=sorted(members, key=_name_order),
                    match_type=match_type,
                    match_value=key,
                )
            )
        return groups

    def find_duplicates(self, contacts: Sequence[ContactRecord]) -> list[ContactDuplicateGroup]:
        claimed: set[str] = set()
        groups = self._claim_groups(contacts, ContactMatchType.PHONE, self._phone_keys, claimed)
        groups += self._claim_groups(contacts, ContactMatchType.EMAIL, self._email_keys, claimed)
        groups += self._claim_groups(contacts, ContactMatchType.NAME, self._name_keys, claimed)
        groups.sort(key=lambda group: _name_order(group.contacts[0]))
        return groups

    def names_similar(self, first: str, second: str) -> bool:
        left = first.strip().casefold()
        right = second.strip().casefold()
        longest = max(len(left), len(right))
        if longest == 0:
            return False
        edits = distance(left, right)
        if edits == 0 or edits > self._settings.similar_name_max_distance:
            return False
        return edits / longest < self._settings.similar_name_max_ratio

    def find_similar_names(
        self,
        contacts: Sequence[ContactRecord],
        *,
        exclude_ids: Collection[str] = (),
    ) -> list[ContactSimilarGroup]:
        excluded = set(exclude_ids)
        candidates = sorted(
            (contact for contact in contacts if contact.id not in excluded and contact.full_name),
            key=_name_order,
        )

        processed: set[str] = set()
        groups: list[ContactSimilarGroup] = []
        for position, contact in enumerate(candidates):
            if contact.id in processed:
                continue
            processed.add(contact.id)
            members = [contact]
            for other in candidates[position + 1 :]:
                if other.id in processed:
                    continue
                if self.names_similar(contact.full_name, other.full_name):
                    members.append(other)
                    processed.add(other.id)
            if len(members) > 1:
                groups.append(ContactSimilarGroup(id=f"similar:{contact.id}", contacts=members))
        return groups

    def find_no_name(self, contacts: Sequence[ContactRecord]) -> list[ContactRecord]:
        return [contact for contact in contacts if not contact.has_name and (contact.has_phone or contact.has_email)]

    def find_no_number(self, contacts: Sequence[ContactRecord]) -> list[ContactRecord]:
        return [contact for contact in contacts if contact.has_name and not contact.has_phone]

    def find_empty(self, contacts: Sequence[ContactRecord]) -> list[ContactRecord]:
        return [
            contact
            for contact in contacts
            if not contact.has_name and not contact.has_phone and not contact.has_email
        ]

    def scan(
        self,
        contacts: Sequence[ContactRecord],
        *,
        checkpoint: Callable[[str], None] | None = None,
    ) -> ContactScanResult:
        """Run every contact pass over one snapshot.

        ``checkpoint`` is called with the phase name before each matching
        pass and may raise to abort the scan.
        """
        if checkpoint is not None:
            checkpoint("duplicate matching")
        duplicates = self.find_duplicates(contacts)
        grouped_ids = {contact.id for group in duplicates for contact in group.contacts}

        if checkpoint is not None:
            checkpoint("similar-name matching")
        similar_names = self.find_similar_names(contacts, exclude_ids=grouped_ids)

        return ContactScanResult(
            duplicates=duplicates,
            similar_names=similar_names,
            no_name=self.find_no_name(contacts),
            no_number=self.find_no_number(contacts),
            empty=self.find_empty(contacts),
        )
