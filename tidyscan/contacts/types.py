from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class ContactMatchType(str, Enum):
    PHONE = "phone"
    EMAIL = "email"
    NAME = "name"


@dataclass(frozen=True, slots=True)
class ContactRecord:
    id: str
    given_name: str = ""
    family_name: str = ""
    middle_name: str = ""
    nickname: str = ""
    organization_name: str = ""
    department_name: str = ""
    job_title: str = ""
    note: str = ""
    phone_numbers: tuple[str, ...] = ()
    email_addresses: tuple[str, ...] = ()
    postal_addresses: tuple[str, ...] = ()
    url_addresses: tuple[str, ...] = ()
    social_profiles: tuple[str, ...] = ()
    birthday: date | None = None
    image_data: bytes | None = None

    @property
    def full_name(self) -> str:
        return f"{self.given_name.strip()} {self.family_name.strip()}".strip()

    @property
    def display_name(self) -> str:
        return self.full_name or self.organization_name.strip()

    @property
    def has_name(self) -> bool:
        return bool(self.given_name.strip() or self.family_name.strip() or self.organization_name.strip())

    @property
    def has_phone(self) -> bool:
        return any(phone.strip() for phone in self.phone_numbers)

    @property
    def has_email(self) -> bool:
        return any(email.strip() for email in self.email_addresses)


@dataclass(slots=True)
class ContactDuplicateGroup:
    id: str
    contacts: list[ContactRecord]
    match_type: ContactMatchType
    match_value: str

    @property
    def count(self) -> int:
        return len(self.contacts)


@dataclass(slots=True)
class ContactSimilarGroup:
    id: str
    contacts: list[ContactRecord]

    @property
    def count(self) -> int:
        return len(self.contacts)


@dataclass(slots=True)
class ContactScanResult:
    duplicates: list[ContactDuplicateGroup]
    similar_names: list[ContactSimilarGroup]
    no_name: list[ContactRecord] = field(default_factory=list)
    no_number: list[ContactRecord] = field(default_factory=list)
    empty: list[ContactRecord] = field(default_factory=list)

    @property
    def mergeable_count(self) -> int:
        return sum(group.count - 1 for group in self.duplicates)
