from typing import Any, List

from pydantic import BaseModel, computed_field

from shared.sweep_result import SweepError


class OrphanRecordSweepResult(BaseModel):
    scanned: int = 0
    candidates: List[Any] = []
    deleted_ids: List[Any] = []
    errors: List[SweepError] = []
    cancelled: bool = False
    dry_run: bool = False

    @computed_field
    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)
