from __future__ import annotations

from collections import defaultdict
from datetime import timezone
from typing import Iterable, Sequence
from uuid import uuid4

from tidyscan.core.config import Settings
from tidyscan.media.types import DuplicateGroup, MediaAsset, SimilarGroup

_FingerprintKey = tuple[int, int, int]


class MediaFingerprintGrouper:
    """Metadata-only grouping of photo assets.

    Duplicates share byte size and pixel dimensions and were captured within
    ``duplicate_time_window_seconds`` of the previous member. Similar photos
    either share a burst identifier or were taken within
    ``similar_time_window_seconds`` of each other. Assets without a creation
    date never join a time-window cluster.
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    def _timestamp(self, asset: MediaAsset) -> float | None:
        value = asset.created_at
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()

    def _chronological(self, assets: Iterable[MediaAsset]) -> list[MediaAsset]:
        # Undated assets sort to the distant-past boundary.
        def sort_key(asset: MediaAsset) -> tuple[bool, float, str]:
            stamp = self._timestamp(asset)
            return (stamp is not None, stamp if stamp is not None else 0.0, asset.id)

        return sorted(assets, key=sort_key)

    def _sweep(self, ordered: Sequence[MediaAsset], window_seconds: float) -> list[list[MediaAsset]]:
        clusters: list[list[MediaAsset]] = []
        current: list[MediaAsset] = []
        previous_stamp: float | None = None

        for asset in ordered:
            stamp = self._timestamp(asset)
            if stamp is None:
                continue
            if current and previous_stamp is not None and stamp - previous_stamp > window_seconds:
                clusters.append(current)
                current = []
            current.append(asset)
            previous_stamp = stamp

        if current:
            clusters.append(current)
        return [cluster for cluster in clusters if len(cluster) > 1]

    def _rank_by_size(self, members: Iterable[MediaAsset]) -> tuple[list[MediaAsset], int, int]:
        ranked = sorted(members, key=lambda asset: asset.byte_size, reverse=True)
        total_size = sum(asset.byte_size for asset in ranked)
        savings_size = total_size - ranked[0].byte_size
        return ranked, total_size, savings_size

    def build_duplicate_group(self, members: Iterable[MediaAsset], *, group_id: str | None = None) -> DuplicateGroup:
        ranked, total_size, savings_size = self._rank_by_size(members)
        return DuplicateGroup(
            id=group_id or str(uuid4()),
            assets=ranked,
            total_size=total_size,
            savings_size=savings_size,
            keep_index=0,
        )

    def build_similar_group(
        self,
        members: Iterable[MediaAsset],
        *,
        is_burst_group: bool,
        group_id: str | None = None,
    ) -> SimilarGroup:
        ranked, total_size, savings_size = self._rank_by_size(members)
        return SimilarGroup(
            id=group_id or str(uuid4()),
            assets=ranked,
            total_size=total_size,
            savings_size=savings_size,
            keep_index=0,
            is_burst_group=is_burst_group,
            recommended_keep_count=1,
        )

    def _duplicate_candidates(self, assets: Iterable[MediaAsset]) -> list[MediaAsset]:
        return [asset for asset in assets if asset.is_image and not asset.is_screenshot and asset.byte_size > 0]

    def _similar_candidates(self, assets: Iterable[MediaAsset]) -> list[MediaAsset]:
        return [asset for asset in assets if asset.is_image and not asset.is_screenshot]

    def build_fingerprint_buckets(self, assets: Iterable[MediaAsset]) -> dict[_FingerprintKey, list[MediaAsset]]:
        buckets: dict[_FingerprintKey, list[MediaAsset]] = defaultdict(list)
        for asset in self._duplicate_candidates(assets):
            buckets[(asset.byte_size, asset.pixel_width, asset.pixel_height)].append(asset)
        return {key: members for key, members in buckets.items() if len(members) > 1}

    def find_duplicates(self, assets: Sequence[MediaAsset]) -> list[DuplicateGroup]:
        return self.group_fingerprint_buckets(self.build_fingerprint_buckets(assets))

    def group_fingerprint_buckets(self, buckets: dict[_FingerprintKey, list[MediaAsset]]) -> list[DuplicateGroup]:
        window = float(self._settings.duplicate_time_window_seconds)

        groups: list[DuplicateGroup] = []
        for key in sorted(buckets):
            for cluster in self._sweep(self._chronological(buckets[key]), window):
                groups.append(self.build_duplicate_group(cluster))

        groups.sort(key=lambda group: group.savings_size, reverse=True)
        return groups

    def find_similar(self, assets: Sequence[MediaAsset]) -> list[SimilarGroup]:
        candidates = self._similar_candidates(assets)

        bursts: dict[str, list[MediaAsset]] = defaultdict(list)
        for asset in candidates:
            if asset.burst_id:
                bursts[asset.burst_id].append(asset)

        groups: list[SimilarGroup] = []
        claimed: set[str] = set()
        for burst_id in sorted(bursts):
            members = bursts[burst_id]
            if len(members) < 2:
                continue
            groups.append(self.build_similar_group(members, is_burst_group=True))
            claimed.update(asset.id for asset in members)

        remaining = [asset for asset in candidates if asset.id not in claimed]
        window = float(self._settings.similar_time_window_seconds)
        for cluster in self._sweep(self._chronological(remaining), window):
            groups.append(self.build_similar_group(cluster, is_burst_group=False))

        groups.sort(key=lambda group: group.savings_size, reverse=True)
        return groups

    def find_screenshots(self, assets: Sequence[MediaAsset]) -> list[MediaAsset]:
        screenshots = [asset for asset in assets if asset.is_image and asset.is_screenshot]
        return self._chronological(screenshots)[::-1]

    def find_big_files(self, assets: Sequence[MediaAsset]) -> list[MediaAsset]:
        threshold = int(self._settings.big_file_threshold_bytes)
        big = [asset for asset in assets if asset.byte_size >= threshold]
        return sorted(big, key=lambda asset: (-asset.byte_size, asset.id))

