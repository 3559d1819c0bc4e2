from tidyscan.contacts.matcher import ContactMatcher
from tidyscan.contacts.merge import merge_contacts
from tidyscan.contacts.phone import PhoneNormalizer, is_same_number, normalize_phone
from tidyscan.contacts.types import (
    ContactDuplicateGroup,
    ContactMatchType,
    ContactRecord,
    ContactScanResult,
    ContactSimilarGroup,
)

__all__ = [
    "ContactMatcher",
    "ContactRecord",
    "ContactMatchType",
    "ContactDuplicateGroup",
    "ContactSimilarGroup",
    "ContactScanResult",
    "PhoneNormalizer",
    "normalize_phone",
    "is_same_number",
    "merge_contacts",
]
