"""Bridge events and HTTP failure correlation."""

from testfocus.bridge.correlation import HttpCorrelationEngine, correlate
from testfocus.bridge.events import parse_bridge_lines, parse_bridge_text
from testfocus.bridge.models import (
    AssertionFailure,
    BridgeStream,
    CorrelationResult,
    HttpEvent,
    HttpEventKind,
    TestIdentity,
)

__all__ = [
    "AssertionFailure",
    "BridgeStream",
    "CorrelationResult",
    "HttpCorrelationEngine",
    "HttpEvent",
    "HttpEventKind",
    "TestIdentity",
    "correlate",
    "parse_bridge_lines",
    "parse_bridge_text",
]
