from typing import Callable, Optional

from shared.config import get_sweep_safety_margin_ms

StopCheck = Callable[[], bool]


def never_stop() -> bool:
    return False


def stop_before_timeout(context, safety_margin_ms: Optional[int] = None) -> StopCheck:
    """
    Stop check built from the Lambda context: True once the remaining time
    drops under the safety margin, so a sweep returns partial results
    instead of being killed mid-delete.
    """
    margin = get_sweep_safety_margin_ms() if safety_margin_ms is None else safety_margin_ms
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if not callable(remaining):
        return never_stop
    return lambda: remaining() < margin
