from tidyscan.media.grouper import MediaFingerprintGrouper
from tidyscan.media.types import (
    DuplicateGroup,
    InMemoryMediaLibrary,
    MediaAsset,
    MediaLibrary,
    MediaScanResult,
    MediaType,
    SimilarGroup,
)

__all__ = [
    "MediaFingerprintGrouper",
    "MediaAsset",
    "MediaType",
    "MediaLibrary",
    "InMemoryMediaLibrary",
    "DuplicateGroup",
    "SimilarGroup",
    "MediaScanResult",
]
