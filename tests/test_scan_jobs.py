from __future__ import annotations

import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import tidyscan.db.session as db_session_module
from tidyscan.contacts.types import ContactRecord
from tidyscan.core.config import get_settings
from tidyscan.db.init_db import initialize_database
from tidyscan.db.models import ScanKind
from tidyscan.jobs.service import InvalidScanStateError, ScanJobNotFoundError, ScanJobService, snapshot_to_dict
from tidyscan.jobs.types import CancellationToken, ScanCancelledError, ScanStatus
from tidyscan.media.types import InMemoryMediaLibrary, MediaAsset
from tidyscan.worker.pipeline import (
    ContactScanPipeline,
    MediaScanPipeline,
    build_media_cache,
    clear_media_cache,
    enqueue_contact_scan,
    enqueue_media_scan,
)

BASE_TIME = datetime(2024, 7, 1, 9, 0, 0, tzinfo=timezone.utc)
WAIT_SECONDS = 10


class GatedLibrary(InMemoryMediaLibrary):
    """Blocks ``fetch_images`` until the test releases it."""

    def __init__(self, assets: list[MediaAsset]):
        super().__init__(assets)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_images(self) -> list[MediaAsset]:
        self.entered.set()
        if not self.release.wait(WAIT_SECONDS):
            raise AssertionError("library was never released")
        return super().fetch_images()


def make_service(tmp_path: Path) -> ScanJobService:
    state_root = tmp_path / "state"
    state_root.mkdir(parents=True, exist_ok=True)
    os.environ["TIDYSCAN_STATE_ROOT"] = state_root.as_posix()

    get_settings.cache_clear()
    db_session_module.reset_engine()
    initialize_database()
    return ScanJobService(get_settings())


def sample_assets() -> list[MediaAsset]:
    return [
        MediaAsset(id="a", byte_size=2_000_000, pixel_width=3000, pixel_height=4000, created_at=BASE_TIME),
        MediaAsset(
            id="b",
            byte_size=2_000_000,
            pixel_width=3000,
            pixel_height=4000,
            created_at=BASE_TIME + timedelta(seconds=10),
        ),
        MediaAsset(
            id="c",
            byte_size=500_000,
            pixel_width=1170,
            pixel_height=2532,
            created_at=BASE_TIME + timedelta(hours=1),
            is_screenshot=True,
        ),
    ]


def test_media_scan_runs_then_serves_cache(tmp_path: Path) -> None:
    service = make_service(tmp_path)
    library = InMemoryMediaLibrary(sample_assets())
    try:
        first_id = enqueue_media_scan(service, library)
        first = service.result(first_id, timeout=WAIT_SECONDS)
        assert first.from_cache is False
        assert len(first.duplicates) == 1
        assert first.duplicates[0].savings_size == 2_000_000
        assert [asset.id for asset in first.screenshots] == ["c"]
        assert service.get_job(first_id).status == ScanStatus.COMPLETED

        second_id = enqueue_media_scan(service, library)
        second = service.result(second_id, timeout=WAIT_SECONDS)
        assert second.from_cache is True
        assert [group.id for group in second.duplicates] == [group.id for group in first.duplicates]

        forced_id = enqueue_media_scan(service, library, force=True)
        assert service.result(forced_id, timeout=WAIT_SECONDS).from_cache is False

        assert clear_media_cache(library) is True
        assert not build_media_cache(library).has_cached_data()
    finally:
        service.shutdown()


def test_submit_while_scanning_returns_in_flight_job(tmp_path: Path) -> None:
    service = make_service(tmp_path)
    library = GatedLibrary(sample_assets())
    try:
        first_id = enqueue_media_scan(service, library, force=True)
        assert library.entered.wait(WAIT_SECONDS)
        assert service.is_scanning(ScanKind.MEDIA)

        second_id = enqueue_media_scan(service, library, force=True)
        assert second_id == first_id
        assert len(service.list_jobs(ScanKind.MEDIA)) == 1

        library.release.set()
        service.result(first_id, timeout=WAIT_SECONDS)
        assert not service.is_scanning(ScanKind.MEDIA)
        assert service.active_job(ScanKind.MEDIA) is None
    finally:
        library.release.set()
        service.shutdown()


def test_cancelled_scan_leaves_cache_untouched(tmp_path: Path) -> None:
    service = make_service(tmp_path)
    library = GatedLibrary(sample_assets())
    try:
        job_id = enqueue_media_scan(service, library, force=True)
        assert library.entered.wait(WAIT_SECONDS)

        snapshot = service.cancel_job(job_id)
        assert snapshot.status == ScanStatus.RUNNING
        library.release.set()

        with pytest.raises(ScanCancelledError):
            service.result(job_id, timeout=WAIT_SECONDS)
        assert service.get_job(job_id).status == ScanStatus.CANCELLED
        assert not build_media_cache(library).has_cached_data()
    finally:
        library.release.set()
        service.shutdown()


def test_pipeline_checks_token_before_work(tmp_path: Path) -> None:
    service = make_service(tmp_path)
    service.shutdown()
    library = InMemoryMediaLibrary(sample_assets())
    cache = build_media_cache(library)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(ScanCancelledError):
        MediaScanPipeline(get_settings(), library, cache)(token)
    assert not cache.has_cached_data()


def test_failed_pipeline_is_recorded(tmp_path: Path) -> None:
    service = make_service(tmp_path)

    def explode(_token: CancellationToken) -> None:
        raise ValueError("library unavailable")

    try:
        snapshot = service.submit(ScanKind.MEDIA, explode)
        with pytest.raises(ValueError):
            service.result(snapshot.id, timeout=WAIT_SECONDS)
        failed = service.get_job(snapshot.id)
        assert failed.status == ScanStatus.FAILED
        assert failed.error_message == "library unavailable"
        assert snapshot_to_dict(failed)["status"] == "failed"

        try:
            service.cancel_job(snapshot.id)
        except InvalidScanStateError:
            pass
        else:
            raise AssertionError("expected InvalidScanStateError")
    finally:
        service.shutdown()


def test_unknown_job_raises(tmp_path: Path) -> None:
    service = make_service(tmp_path)
    try:
        service.get_job("missing")
    except ScanJobNotFoundError:
        pass
    else:
        raise AssertionError("expected ScanJobNotFoundError")
    finally:
        service.shutdown()


def test_contact_scan_job(tmp_path: Path) -> None:
    service = make_service(tmp_path)
    contacts = [
        ContactRecord(id="c1", given_name="Jon", family_name="Smith", phone_numbers=("+1 (212) 555-0100",)),
        ContactRecord(id="c2", given_name="Jonathan", family_name="Smith", phone_numbers=("12125550100",)),
        ContactRecord(id="c3", given_name="Mariya", family_name="Petrova"),
        ContactRecord(id="c4", given_name="Maria", family_name="Petrova"),
    ]
    try:
        job_id = enqueue_contact_scan(service, lambda: contacts)
        result = service.result(job_id, timeout=WAIT_SECONDS)
        assert [group.match_value for group in result.duplicates] == ["12125550100"]
        assert [{contact.id for contact in group.contacts} for group in result.similar_names] == [{"c3", "c4"}]
        assert [contact.id for contact in result.no_number] == ["c3", "c4"]
        assert result.mergeable_count == 1
    finally:
        service.shutdown()


def test_contact_scan_stops_at_next_phase_after_cancel(tmp_path: Path) -> None:
    make_service(tmp_path).shutdown()
    token = CancellationToken()
    contacts = [ContactRecord(id="c1", given_name="Jon", family_name="Smith")]

    def cancelling_source() -> list[ContactRecord]:
        token.cancel()
        return contacts

    with pytest.raises(ScanCancelledError, match="duplicate matching"):
        ContactScanPipeline(get_settings(), cancelling_source)(token)
