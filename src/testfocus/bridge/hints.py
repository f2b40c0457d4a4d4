"""Heuristics linking assertion failures to captured HTTP traffic."""

import math
import re
from typing import Iterable, Optional, Sequence

from testfocus.bridge.models import AssertionFailure, HttpEvent

ROUTE_EXACT_SCORE = 500
ROUTE_SUFFIX_SCORE = 300
ROUTE_SUBSTRING_SCORE = 200
METHOD_MATCH_BONUS = 50
METHOD_ONLY_SCORE = 10

TITLE_METHOD_PATH = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)\s+([^\s)]+)", re.IGNORECASE)
TRANSPORT_ERROR = re.compile(
    r"\bsocket hang up\b|\beconnreset\b|\betimedout\b|\beconnrefused\b|\b(?:write )?epipe\b"
    r"|\bconnection reset\b|\btimed out\b|\bconnection refused\b|\bbroken pipe\b"
)
EXPECTED_RECEIVED = re.compile(r"Expected:\s*(\d{3})[\s\S]*?Received:\s*(\d{3})", re.IGNORECASE)
STATUS_WORDS = re.compile(r"\bstatus(code)?\b|\btohavestatus(code)?\b")
HTTP_FILE = re.compile(r"(?:^|/)(routes?|api|controllers?|e2e|integration)(?:/|\.test\.)", re.IGNORECASE)


def parse_method_path_from_title(title: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Extract an ``(HTTP method, path)`` hint from a test title like ``GET /users``."""
    if not title:
        return None, None
    match = TITLE_METHOD_PATH.search(title)
    if not match:
        return None, None
    return match.group(1).upper(), match.group(2)


def route_similarity_score(method: Optional[str], path: Optional[str], event: HttpEvent) -> int:
    """Score how well an event matches a method/path hint."""
    if not path and not method:
        return 0
    method_ok = 1 if method and event.method and method == event.method.upper() else 0
    route = event.route or event.url or ""
    if not route:
        return method_ok * METHOD_ONLY_SCORE
    if path and route == path:
        return ROUTE_EXACT_SCORE + method_ok * METHOD_MATCH_BONUS
    if path and route.endswith(path):
        return ROUTE_SUFFIX_SCORE + method_ok * METHOD_MATCH_BONUS
    if path and path in route:
        return ROUTE_SUBSTRING_SCORE + method_ok * METHOD_MATCH_BONUS
    return method_ok * METHOD_ONLY_SCORE


def is_transport_error(message: Optional[str]) -> bool:
    """Whether a failure message signals a broken connection rather than a bad response."""
    return bool(TRANSPORT_ERROR.search((message or "").lower()))


def is_http_status_number(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 100 <= value <= 599


def infer_http_numbers_from_text(lines: Iterable[str]) -> tuple[Optional[int], Optional[int]]:
    """Pull ``(expected, received)`` status codes out of matcher output text."""
    match = EXPECTED_RECEIVED.search("\n".join(lines))
    if not match:
        return None, None
    return int(match.group(1)), int(match.group(2))


def title_suggests_http(title: Optional[str]) -> bool:
    method, path = parse_method_path_from_title(title)
    return bool(method or (path and path.startswith("/")))


def has_status_semantics(failure: Optional[AssertionFailure]) -> bool:
    """Whether a failure is about an HTTP status code."""
    if failure is None:
        return False
    if is_http_status_number(failure.expected_number) or is_http_status_number(failure.received_number):
        return True
    combined = f"{failure.matcher or ''} {failure.message or ''}".lower()
    return bool(STATUS_WORDS.search(combined))


def file_suggests_http(rel_path: str) -> bool:
    return bool(HTTP_FILE.search(rel_path.replace("\\", "/")))


def is_http_relevant(
    rel_path: str,
    failure: Optional[AssertionFailure] = None,
    title: Optional[str] = None,
    http_count_in_same_test: int = 0,
    has_transport_signal: bool = False,
) -> bool:
    """Decide whether HTTP context is worth attaching to a failure at all."""
    return (
        has_transport_signal
        or http_count_in_same_test > 0
        or title_suggests_http(title)
        or has_status_semantics(failure)
        or file_suggests_http(rel_path)
    )


def _finite(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def time_delta(first: Optional[float], second: Optional[float]) -> Optional[float]:
    """Absolute difference of two timestamps, None when either is missing."""
    if not (_finite(first) and _finite(second)):
        return None
    return abs(first - second)


def events_near(
    events: Sequence[HttpEvent],
    timestamp_ms: Optional[float],
    window_ms: float,
    test_path: Optional[str] = None,
) -> list[HttpEvent]:
    """Events within ``window_ms`` of a timestamp, optionally limited to one test file."""
    if not _finite(timestamp_ms):
        return []
    near = []
    for event in events:
        delta = time_delta(event.timestamp_ms, timestamp_ms)
        if delta is None or delta > window_ms:
            continue
        if test_path and event.test_path != test_path:
            continue
        near.append(event)
    return near


def summarize_url(method: Optional[str] = None, url: Optional[str] = None, route: Optional[str] = None) -> str:
    """One-line ``METHOD route ? query`` label for an exchange."""
    base = route or url or ""
    query = f"? {url.split('?', 1)[1]}" if url and "?" in url else ""
    return " ".join(part for part in (method or "", base, query) if part).strip()
