from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tidyscan.cache.types import CachedGroup, CachedScanPayload, ScanCacheSnapshot
from tidyscan.core.config import Settings
from tidyscan.db.models import ScanCacheEntry, ScanKind
from tidyscan.media.types import DuplicateGroup, MediaAsset, MediaLibrary, SimilarGroup

logger = logging.getLogger(__name__)

CachedResults = tuple[list[DuplicateGroup], list[SimilarGroup]]


class ScanCacheError(RuntimeError):
    pass


class ScanResultCache:
    """Persisted media grouping results for one library.

    Validity is approximate: an entry is fresh while the library's image count
    equals the count recorded at save time. Unreadable entries behave as a
    cache miss.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker[Session],
        library: MediaLibrary,
        *,
        scan_kind: ScanKind = ScanKind.MEDIA,
    ):
        self._settings = settings
        self._session_factory = session_factory
        self._library = library
        self._scan_kind = scan_kind

    def _now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def _coerce_utc(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def _load(self) -> ScanCacheEntry | None:
        with self._session_factory() as session:
            return session.get(ScanCacheEntry, self._scan_kind)

    def _load_quietly(self) -> ScanCacheEntry | None:
        try:
            return self._load()
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            # JSON columns are decoded while the row loads.
            logger.warning("Scan cache for %s is unreadable, treating as miss: %s", self._scan_kind.value, exc)
            return None

    def _to_cached_group(self, group: DuplicateGroup) -> CachedGroup:
        extra: dict[str, object] = {}
        if isinstance(group, SimilarGroup):
            extra = {
                "is_burst_group": group.is_burst_group,
                "recommended_keep_count": group.recommended_keep_count,
            }
        return CachedGroup(
            id=group.id,
            member_ids=group.asset_ids,
            total_size=group.total_size,
            savings_size=group.savings_size,
            keep_index=group.keep_index,
            **extra,
        )

    def _resolve_members(self, cached: CachedGroup, resolved: dict[str, MediaAsset]) -> list[MediaAsset] | None:
        members = [resolved.get(member_id) for member_id in cached.member_ids]
        if any(member is None for member in members):
            return None
        return [member for member in members if member is not None]

    def _group_count(self, payload: object, key: str) -> int:
        if not isinstance(payload, dict):
            return 0
        groups = payload.get(key)
        return len(groups) if isinstance(groups, list) else 0

    def _to_snapshot(self, row: ScanCacheEntry) -> ScanCacheSnapshot:
        item_ids = row.item_ids if isinstance(row.item_ids, list) else []
        return ScanCacheSnapshot(
            scan_kind=row.scan_kind,
            item_count=row.item_count,
            last_scan_at=self._coerce_utc(row.last_scan_at),
            item_ids=frozenset(str(item_id) for item_id in item_ids),
            duplicate_group_count=self._group_count(row.payload, "duplicates"),
            similar_group_count=self._group_count(row.payload, "similar"),
        )

    def is_valid(self) -> bool:
        row = self._load_quietly()
        if row is None:
            return False
        live_count = self._library.count_images()
        if live_count != row.item_count:
            logger.info(
                "Scan cache for %s is stale: cached %d items, library has %d",
                self._scan_kind.value,
                row.item_count,
                live_count,
            )
            return False
        return True

    def get(self) -> CachedResults | None:
        row = self._load_quietly()
        if row is None:
            return None
        try:
            payload = CachedScanPayload.model_validate(row.payload)
        except ValidationError as exc:
            logger.warning("Scan cache for %s is corrupt, treating as miss: %s", self._scan_kind.value, exc)
            return None

        member_ids = {
            member_id
            for group in (*payload.duplicates, *payload.similar)
            for member_id in group.member_ids
        }
        resolved = self._library.resolve(member_ids)

        duplicates: list[DuplicateGroup] = []
        for cached in payload.duplicates:
            members = self._resolve_members(cached, resolved)
            if members is None:
                continue
            duplicates.append(
                DuplicateGroup(
                    id=cached.id,
                    assets=members,
                    total_size=cached.total_size,
                    savings_size=cached.savings_size,
                    keep_index=cached.keep_index,
                )
            )

        similar: list[SimilarGroup] = []
        for cached in payload.similar:
            members = self._resolve_members(cached, resolved)
            if members is None:
                continue
            similar.append(
                SimilarGroup(
                    id=cached.id,
                    assets=members,
                    total_size=cached.total_size,
                    savings_size=cached.savings_size,
                    keep_index=cached.keep_index,
                    is_burst_group=cached.is_burst_group,
                    recommended_keep_count=cached.recommended_keep_count,
                )
            )

        dropped = len(payload.duplicates) + len(payload.similar) - len(duplicates) - len(similar)
        if dropped:
            logger.info("Dropped %d cached groups with members no longer in the library", dropped)
        return duplicates, similar

    def save(
        self,
        duplicates: Sequence[DuplicateGroup],
        similar: Sequence[SimilarGroup],
        *,
        item_ids: Iterable[str] | None = None,
    ) -> ScanCacheSnapshot:
        if item_ids is None:
            item_ids = [asset.id for asset in self._library.fetch_images()]
        identity_set = sorted(set(item_ids))
        payload = CachedScanPayload(
            duplicates=[self._to_cached_group(group) for group in duplicates],
            similar=[self._to_cached_group(group) for group in similar],
        )
        now = self._now()

        with self._session_factory() as session:
            try:
                # Replace without loading so an undecodable row cannot block the write.
                session.execute(delete(ScanCacheEntry).where(ScanCacheEntry.scan_kind == self._scan_kind))
                row = ScanCacheEntry(
                    scan_kind=self._scan_kind,
                    item_count=len(identity_set),
                    last_scan_at=now,
                    item_ids=identity_set,
                    payload=payload.model_dump(mode="json"),
                )
                session.add(row)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise ScanCacheError(f"Failed to write scan cache for {self._scan_kind.value}") from exc
            snapshot = self._to_snapshot(row)

        logger.info(
            "Saved scan cache for %s: %d items, %d duplicate groups, %d similar groups",
            self._scan_kind.value,
            snapshot.item_count,
            snapshot.duplicate_group_count,
            snapshot.similar_group_count,
        )
        return snapshot

    def clear(self) -> bool:
        with self._session_factory() as session:
            try:
                result = session.execute(delete(ScanCacheEntry).where(ScanCacheEntry.scan_kind == self._scan_kind))
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise ScanCacheError(f"Failed to clear scan cache for {self._scan_kind.value}") from exc
        removed = int(result.rowcount or 0) > 0
        if removed:
            logger.info("Cleared scan cache for %s", self._scan_kind.value)
        return removed

    def snapshot(self) -> ScanCacheSnapshot | None:
        row = self._load_quietly()
        return self._to_snapshot(row) if row is not None else None

    def has_cached_data(self) -> bool:
        return self._load_quietly() is not None

    def last_scan_at(self) -> datetime | None:
        row = self._load_quietly()
        return self._coerce_utc(row.last_scan_at) if row is not None else None
