"""Scan dispatch module for fragmentscan.

Public API:
    ScanDispatcher -- Classify, rate-limit, record and route tokens
    ScanStation -- One kiosk's accumulator wired to a dispatcher
    LogFeedback -- Observer that reports results on a logger
"""

from fragmentscan.dispatch.dispatcher import ScanDispatcher, history_key
from fragmentscan.dispatch.feedback import LogFeedback, feedback_label
from fragmentscan.dispatch.station import ScanStation

__all__ = [
    "LogFeedback",
    "ScanDispatcher",
    "ScanStation",
    "feedback_label",
    "history_key",
]
