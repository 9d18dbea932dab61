"""Timed step execution for analysis timelines."""

import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from sivic.models.analysis import AnalysisStep, AnalysisTimeline, StepStatus

T = TypeVar('T')

logger = logging.getLogger(__name__)

MillisClock = Callable[[], int]


def epoch_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


async def run_step(
    timeline: AnalysisTimeline,
    step_id: str,
    name: str,
    operation: Callable[[], Awaitable[T]],
    clock: MillisClock = epoch_millis
) -> Optional[T]:
    """
    Run one operation as a recorded timeline step.

    The step is appended before the operation starts, so steps appear in
    execution order. A failing operation marks the step as ``error`` and
    yields None instead of raising; whether that aborts the analysis is the
    caller's decision.

    Args:
        timeline: Timeline the step is recorded on
        step_id: Stable step identifier
        name: Human readable step name
        operation: Zero-argument coroutine function to run
        clock: Epoch-millisecond time source

    Returns:
        The operation's result, or None if it failed
    """
    step = AnalysisStep(id=step_id, name=name)
    timeline.steps.append(step)

    step.status = StepStatus.RUNNING
    step.start_time = clock()
    try:
        result = await operation()
    except Exception as e:
        step.status = StepStatus.ERROR
        step.end_time = clock()
        step.duration = step.end_time - step.start_time
        step.error = str(e) or e.__class__.__name__
        logger.warning(f"Step {step_id} failed after {step.duration}ms: {step.error}")
        return None

    step.status = StepStatus.COMPLETE
    step.end_time = clock()
    step.duration = step.end_time - step.start_time
    step.data = result
    return result
