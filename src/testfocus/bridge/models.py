"""Data models for bridge events captured from an instrumented test run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class HttpEventKind(str, Enum):
    """Kind of a captured network exchange."""

    RESPONSE = "response"
    ABORT = "abort"


@dataclass
class HttpEvent:
    """A network exchange observed while a test was running."""

    timestamp_ms: Optional[float] = None
    kind: HttpEventKind = HttpEventKind.RESPONSE
    method: Optional[str] = None
    url: Optional[str] = None
    route: Optional[str] = None
    status_code: Optional[int] = None
    duration_ms: Optional[float] = None
    content_type: Optional[str] = None
    request_id: Optional[str] = None
    json_body: Any = None
    body_preview: Optional[str] = None
    test_path: Optional[str] = None
    test_name: Optional[str] = None
    sequence: int = 0  # emission order within the stream

    @property
    def is_abort(self) -> bool:
        return self.kind == HttpEventKind.ABORT

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "timestamp_ms": self.timestamp_ms,
            "kind": self.kind.value,
            "method": self.method,
            "url": self.url,
            "route": self.route,
            "status_code": self.status_code,
            "duration_ms": self.duration_ms,
            "content_type": self.content_type,
            "request_id": self.request_id,
            "json_body": self.json_body,
            "body_preview": self.body_preview,
            "test_path": self.test_path,
            "test_name": self.test_name,
            "sequence": self.sequence,
        }


@dataclass
class AssertionFailure:
    """An assertion failure reported by the instrumented test process."""

    timestamp_ms: Optional[float] = None
    matcher: Optional[str] = None
    expected_number: Optional[float] = None
    received_number: Optional[float] = None
    message: str = ""
    stack: Optional[str] = None
    test_path: Optional[str] = None
    test_name: Optional[str] = None
    expected_preview: Optional[str] = None
    actual_preview: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "timestamp_ms": self.timestamp_ms,
            "matcher": self.matcher,
            "expected_number": self.expected_number,
            "received_number": self.received_number,
            "message": self.message,
            "stack": self.stack,
            "test_path": self.test_path,
            "test_name": self.test_name,
            "expected_preview": self.expected_preview,
            "actual_preview": self.actual_preview,
        }


@dataclass
class TestIdentity:
    """Which test a failure belongs to, plus its display title."""

    __test__ = False

    test_path: Optional[str] = None
    test_name: Optional[str] = None
    title: Optional[str] = None


@dataclass
class CorrelationResult:
    """Outcome of correlating one failure with the captured exchanges."""

    event: Optional[HttpEvent] = None
    score: Optional[float] = None
    reason: str = "no-match"  # 'matched', 'abort', 'no-match', 'transport-miss'
    message: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.event is not None

    def to_dict(self) -> dict:
        return {
            "event": self.event.to_dict() if self.event else None,
            "score": self.score,
            "reason": self.reason,
            "message": self.message,
        }


@dataclass
class BridgeStream:
    """Events parsed from one captured output stream."""

    http: list[HttpEvent] = field(default_factory=list)
    assertions: list[AssertionFailure] = field(default_factory=list)
    other_counts: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.http) + len(self.assertions) + sum(self.other_counts.values())
