"""Scanner input module for fragmentscan.

Turns keyboard-wedge keystrokes into classified scans.

Public API:
    InputAccumulator -- Buffers key events into completed tokens
    classify -- Content-based token classification
    Scheduler -- Abstract clock/timer capability
    AsyncioScheduler -- Event-loop backed scheduler
    ManualScheduler -- Hand-driven scheduler for tests and replays
"""

from fragmentscan.scanner.accumulator import InputAccumulator
from fragmentscan.scanner.classifier import classify, classify_text
from fragmentscan.scanner.clock import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
    TimerHandle,
)

__all__ = [
    "AsyncioScheduler",
    "InputAccumulator",
    "ManualScheduler",
    "Scheduler",
    "TimerHandle",
    "classify",
    "classify_text",
]
