from typing import Any

from pydantic import BaseModel


class SweepError(BaseModel):
    """One entry a sweep could not process: blob key or product id, error class, message."""

    key: str
    error: str
    detail: str = ""

    @classmethod
    def from_exception(cls, key: Any, exc: BaseException) -> "SweepError":
        return cls(key=str(key), error=type(exc).__name__, detail=str(exc))
