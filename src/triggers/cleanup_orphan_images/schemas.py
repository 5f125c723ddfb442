from datetime import datetime
from typing import List, Set

from pydantic import BaseModel, computed_field

from shared.sweep_result import SweepError


class OrphanFileSweepResult(BaseModel):
    started_at: datetime
    cutoff: datetime
    scanned: int = 0
    orphans_found: int = 0
    deleted_keys: Set[str] = set()
    skipped_recent: Set[str] = set()
    errors: List[SweepError] = []
    invalid_references: List[SweepError] = []
    cancelled: bool = False
    dry_run: bool = False

    @computed_field
    @property
    def deleted_count(self) -> int:
        return len(self.deleted_keys)
