from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Protocol, Sequence


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True, slots=True)
class MediaAsset:
    id: str
    byte_size: int
    pixel_width: int
    pixel_height: int
    created_at: datetime | None = None
    burst_id: str | None = None
    is_favorite: bool = False
    is_screenshot: bool = False
    media_type: MediaType = MediaType.IMAGE

    @property
    def is_image(self) -> bool:
        return self.media_type == MediaType.IMAGE


@dataclass(slots=True)
class DuplicateGroup:
    id: str
    assets: list[MediaAsset]
    total_size: int
    savings_size: int
    keep_index: int = 0

    @property
    def count(self) -> int:
        return len(self.assets)

    @property
    def keep_asset(self) -> MediaAsset:
        return self.assets[self.keep_index]

    @property
    def asset_ids(self) -> list[str]:
        return [asset.id for asset in self.assets]


@dataclass(slots=True)
class SimilarGroup(DuplicateGroup):
    is_burst_group: bool = False
    recommended_keep_count: int = 1


@dataclass(slots=True)
class MediaScanResult:
    duplicates: list[DuplicateGroup]
    similar: list[SimilarGroup]
    screenshots: list[MediaAsset] = field(default_factory=list)
    big_files: list[MediaAsset] = field(default_factory=list)
    from_cache: bool = False

    @property
    def duplicate_savings(self) -> int:
        return sum(group.savings_size for group in self.duplicates)

    @property
    def similar_savings(self) -> int:
        return sum(group.savings_size for group in self.similar)

    @property
    def screenshots_size(self) -> int:
        return sum(asset.byte_size for asset in self.screenshots)

    @property
    def total_savings(self) -> int:
        return self.duplicate_savings + self.similar_savings + self.screenshots_size


class MediaLibrary(Protocol):
    def count_images(self) -> int: ...

    def fetch_images(self) -> list[MediaAsset]: ...

    def resolve(self, asset_ids: Iterable[str]) -> dict[str, MediaAsset]: ...


class InMemoryMediaLibrary:
    """Snapshot of already-fetched assets, exposed through the ``MediaLibrary`` protocol."""

    def __init__(self, assets: Sequence[MediaAsset] = ()):
        self._assets: dict[str, MediaAsset] = {}
        self.replace(assets)

    def replace(self, assets: Sequence[MediaAsset]) -> None:
        self._assets = {asset.id: asset for asset in assets}

    def remove(self, asset_ids: Iterable[str]) -> int:
        removed = 0
        for asset_id in asset_ids:
            if self._assets.pop(asset_id, None) is not None:
                removed += 1
        return removed

    def count_images(self) -> int:
        return sum(1 for asset in self._assets.values() if asset.is_image)

    def fetch_images(self) -> list[MediaAsset]:
        return [asset for asset in self._assets.values() if asset.is_image]

    def resolve(self, asset_ids: Iterable[str]) -> dict[str, MediaAsset]:
        resolved: dict[str, MediaAsset] = {}
        for asset_id in asset_ids:
            asset = self._assets.get(asset_id)
            if asset is not None:
                resolved[asset_id] = asset
        return resolved
