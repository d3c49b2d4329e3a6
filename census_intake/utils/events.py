"""Structured stage events emitted through logging."""

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger("census_intake.events")


def log_stage_event(
    stage: str,
    duration_ms: float,
    confidence: Optional[float] = None,
    **counts: Any,
) -> Dict[str, Any]:
    """
    Emit one structured event for a pipeline stage.

    The event payload is attached to the log record under ``extra`` so handlers
    can serialize it without parsing the message.

    Args:
        stage: Stage name (e.g. "structure_analysis")
        duration_ms: Wall time spent in the stage
        confidence: Stage confidence, when the stage produces one
        **counts: Stage specific counts (tables, questions, ...)

    Returns:
        The event payload
    """
    event: Dict[str, Any] = {
        "event": "pipeline_stage",
        "stage": stage,
        "duration_ms": round(duration_ms, 3),
    }
    if confidence is not None:
        event["confidence"] = round(confidence, 4)
    event.update(counts)

    details = ", ".join(f"{k}={v}" for k, v in event.items() if k not in ("event", "stage"))
    logger.info(f"Stage {stage} finished ({details})", extra={"census_event": event})
    return event


class StageTimer:
    """Elapsed time holder yielded by ``timed_stage``."""

    def __init__(self):
        self.started = time.perf_counter()
        self.duration_ms = 0.0

    def stop(self) -> float:
        self.duration_ms = (time.perf_counter() - self.started) * 1000.0
        return self.duration_ms


@contextmanager
def timed_stage() -> Iterator[StageTimer]:
    timer = StageTimer()
    try:
        yield timer
    finally:
        timer.stop()
