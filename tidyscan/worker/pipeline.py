from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

from tidyscan.cache.service import ScanResultCache
from tidyscan.contacts.matcher import ContactMatcher
from tidyscan.contacts.types import ContactRecord, ContactScanResult
from tidyscan.core.config import Settings, get_settings
from tidyscan.db.models import ScanKind
from tidyscan.db.session import get_session_factory
from tidyscan.jobs.service import ScanJobService
from tidyscan.jobs.types import CancellationToken
from tidyscan.media.grouper import MediaFingerprintGrouper
from tidyscan.media.types import DuplicateGroup, MediaAsset, MediaLibrary, MediaScanResult

logger = logging.getLogger(__name__)

ContactSource = Callable[[], Sequence[ContactRecord]]


class MediaScanPipeline:
    def __init__(
        self,
        settings: Settings,
        library: MediaLibrary,
        cache: ScanResultCache,
        grouper: MediaFingerprintGrouper | None = None,
        *,
        force: bool = False,
    ):
        self._settings = settings
        self._library = library
        self._cache = cache
        self._grouper = grouper or MediaFingerprintGrouper(settings)
        self._force = force

    def _categories(self, assets: Sequence[MediaAsset]) -> tuple[list[MediaAsset], list[MediaAsset]]:
        return self._grouper.find_screenshots(assets), self._grouper.find_big_files(assets)

    def _from_cache(self) -> MediaScanResult | None:
        if not self._cache.is_valid():
            return None
        cached = self._cache.get()
        if cached is None:
            return None
        duplicates, similar = cached
        screenshots, big_files = self._categories(self._library.fetch_images())
        logger.info("Media scan served from cache: %d duplicate groups, %d similar groups", len(duplicates), len(similar))
        return MediaScanResult(
            duplicates=duplicates,
            similar=similar,
            screenshots=screenshots,
            big_files=big_files,
            from_cache=True,
        )

    def _duplicate_pass(self, assets: Sequence[MediaAsset], token: CancellationToken) -> list[DuplicateGroup]:
        buckets = self._grouper.build_fingerprint_buckets(assets)
        token.raise_if_cancelled("duplicate sweep")
        return self._grouper.group_fingerprint_buckets(buckets)

    def __call__(self, token: CancellationToken) -> MediaScanResult:
        if not self._force:
            token.raise_if_cancelled("cache lookup")
            cached = self._from_cache()
            if cached is not None:
                return cached

        token.raise_if_cancelled("library snapshot")
        assets = self._library.fetch_images()

        token.raise_if_cancelled("grouping")
        # Both passes read the same immutable snapshot and finish before the cache write.
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="tidyscan-pass") as passes:
            duplicates_future = passes.submit(self._duplicate_pass, assets, token)
            similar_future = passes.submit(self._grouper.find_similar, assets)
            duplicates = duplicates_future.result()
            similar = similar_future.result()

        token.raise_if_cancelled("cache write")
        self._cache.save(duplicates, similar, item_ids=[asset.id for asset in assets])

        screenshots, big_files = self._categories(assets)
        return MediaScanResult(
            duplicates=duplicates,
            similar=similar,
            screenshots=screenshots,
            big_files=big_files,
            from_cache=False,
        )


class ContactScanPipeline:
    def __init__(self, settings: Settings, source: ContactSource, matcher: ContactMatcher | None = None):
        self._settings = settings
        self._source = source
        self._matcher = matcher or ContactMatcher(settings)

    def __call__(self, token: CancellationToken) -> ContactScanResult:
        token.raise_if_cancelled("contact snapshot")
        contacts = list(self._source())
        return self._matcher.scan(contacts, checkpoint=token.raise_if_cancelled)


def build_media_cache(library: MediaLibrary) -> ScanResultCache:
    return ScanResultCache(get_settings(), get_session_factory(), library)


def enqueue_media_scan(job_service: ScanJobService, library: MediaLibrary, *, force: bool = False) -> str:
    settings = get_settings()
    pipeline = MediaScanPipeline(settings, library, build_media_cache(library), force=force)
    snapshot = job_service.submit(ScanKind.MEDIA, pipeline)
    return snapshot.id


def enqueue_contact_scan(job_service: ScanJobService, source: ContactSource) -> str:
    pipeline = ContactScanPipeline(get_settings(), source)
    snapshot = job_service.submit(ScanKind.CONTACTS, pipeline)
    return snapshot.id


def clear_media_cache(library: MediaLibrary) -> bool:
    return build_media_cache(library).clear()
