from tidyscan.cache.service import CachedResults, ScanCacheError, ScanResultCache
from tidyscan.cache.types import CachedGroup, CachedScanPayload, ScanCacheSnapshot

__all__ = [
    "ScanResultCache",
    "ScanCacheError",
    "ScanCacheSnapshot",
    "CachedResults",
    "CachedGroup",
    "CachedScanPayload",
]
