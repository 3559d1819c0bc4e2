from __future__ import annotations

import argparse
import os
import random
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import tidyscan.db.session as db_session_module

from tidyscan.contacts.matcher import ContactMatcher
from tidyscan.contacts.types import ContactRecord
from tidyscan.core.config import get_settings
from tidyscan.core.logging import configure_logging
from tidyscan.db.init_db import initialize_database
from tidyscan.db.models import ScanKind
from tidyscan.jobs.service import ScanJobService, snapshot_to_dict
from tidyscan.media.types import InMemoryMediaLibrary, MediaAsset
from tidyscan.worker.pipeline import enqueue_contact_scan, enqueue_media_scan

_GIVEN = ["Anna", "Ivan", "John", "Jon", "Maria", "Mariya", "Kenji", "Priya", "Lukas", "Chen"]
_FAMILY = ["Smith", "Smyth", "Petrov", "Tanaka", "Sharma", "Muller", "Mueller", "Wang", "Silva"]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark media grouping and contact matching")
    parser.add_argument("--state-root", required=True, help="State root directory")
    parser.add_argument("--assets", type=int, default=20000, help="Number of synthetic photo assets")
    parser.add_argument("--contacts", type=int, default=2000, help="Number of synthetic contacts")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    parser.add_argument("--repeat", action="store_true", help="Run the media scan twice to measure a cache hit")
    return parser.parse_args()


def configure_env(state_root: Path) -> None:
    state_root.mkdir(parents=True, exist_ok=True)
    os.environ["TIDYSCAN_STATE_ROOT"] = state_root.as_posix()

    get_settings.cache_clear()
    db_session_module.reset_engine()


def build_assets(total: int, rng: random.Random) -> list[MediaAsset]:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assets: list[MediaAsset] = []
    clock = start
    for idx in range(total):
        clock += timedelta(seconds=rng.choice([1, 2, 3, 30, 600, 3600]))
        copy_of = assets[-1] if assets and rng.random() < 0.05 else None
        burst_id = f"burst-{idx // 5}" if rng.random() < 0.02 else None
        if copy_of is not None:
            assets.append(
                MediaAsset(
                    id=f"asset-{idx}",
                    byte_size=copy_of.byte_size,
                    pixel_width=copy_of.pixel_width,
                    pixel_height=copy_of.pixel_height,
                    created_at=clock,
                )
            )
            continue
        assets.append(
            MediaAsset(
                id=f"asset-{idx}",
                byte_size=rng.randint(500_000, 12_000_000),
                pixel_width=rng.choice([3024, 4032, 1170]),
                pixel_height=rng.choice([4032, 3024, 2532]),
                created_at=clock,
                burst_id=burst_id,
                is_screenshot=rng.random() < 0.08,
            )
        )
    return assets


def build_contacts(total: int, rng: random.Random) -> list[ContactRecord]:
    contacts: list[ContactRecord] = []
    for idx in range(total):
        number = f"+1 (212) 555-{rng.randint(0, 9999):04d}"
        contacts.append(
            ContactRecord(
                id=f"contact-{idx}",
                given_name=rng.choice(_GIVEN),
                family_name=rng.choice(_FAMILY),
                phone_numbers=(number,) if rng.random() < 0.9 else (),
            )
        )
    return contacts


def timed_media_scan(job_service: ScanJobService, library: InMemoryMediaLibrary, *, force: bool) -> None:
    start = time.perf_counter()
    job_id = enqueue_media_scan(job_service, library, force=force)
    result = job_service.result(job_id)
    elapsed = time.perf_counter() - start
    print(
        f"media duplicates={len(result.duplicates)} similar={len(result.similar)} "
        f"from_cache={result.from_cache} savings_bytes={result.total_savings} elapsed_seconds={elapsed:.3f}"
    )


def main() -> None:
    args = parse_args()
    configure_env(Path(args.state_root))
    settings = get_settings()
    configure_logging(settings.log_level)
    initialize_database()

    rng = random.Random(args.seed)
    library = InMemoryMediaLibrary(build_assets(args.assets, rng))
    contacts = build_contacts(args.contacts, rng)

    job_service = ScanJobService(settings)
    try:
        timed_media_scan(job_service, library, force=True)
        if args.repeat:
            timed_media_scan(job_service, library, force=False)

        start = time.perf_counter()
        job_id = enqueue_contact_scan(job_service, lambda: contacts)
        contact_result = job_service.result(job_id)
        elapsed = time.perf_counter() - start
        print(
            f"contacts duplicates={len(contact_result.duplicates)} "
            f"similar_names={len(contact_result.similar_names)} elapsed_seconds={elapsed:.3f}"
        )

        start = time.perf_counter()
        ContactMatcher(settings).find_similar_names(contacts)
        print(f"similar_names_only elapsed_seconds={time.perf_counter() - start:.3f}")

        for snapshot in job_service.list_jobs(ScanKind.MEDIA):
            print(snapshot_to_dict(snapshot))
    finally:
        job_service.shutdown()


if __name__ == "__main__":
    main()
