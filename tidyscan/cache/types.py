from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tidyscan.db.models import ScanKind


class CachedGroup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    member_ids: list[str] = Field(min_length=2)
    total_size: int = Field(ge=0)
    savings_size: int = Field(ge=0)
    keep_index: int = Field(default=0, ge=0)
    is_burst_group: bool = False
    recommended_keep_count: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _validate_keep_index(self) -> "CachedGroup":
        if self.keep_index >= len(self.member_ids):
            raise ValueError("keep_index must point at a member")
        if self.savings_size > self.total_size:
            raise ValueError("savings_size cannot exceed total_size")
        return self


class CachedScanPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duplicates: list[CachedGroup] = Field(default_factory=list)
    similar: list[CachedGroup] = Field(default_factory=list)


@dataclass(frozen=True)
class ScanCacheSnapshot:
    scan_kind: ScanKind
    item_count: int
    last_scan_at: datetime
    item_ids: frozenset[str]
    duplicate_group_count: int
    similar_group_count: int
