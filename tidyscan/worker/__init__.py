from tidyscan.worker.pipeline import (
    ContactScanPipeline,
    MediaScanPipeline,
    clear_media_cache,
    enqueue_contact_scan,
    enqueue_media_scan,
)

__all__ = [
    "MediaScanPipeline",
    "ContactScanPipeline",
    "enqueue_media_scan",
    "enqueue_contact_scan",
    "clear_media_cache",
]
