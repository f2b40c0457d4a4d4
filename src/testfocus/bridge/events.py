"""Parsing of marker-tagged JSON bridge events from captured test output."""

import json
import logging
import math
from typing import Any, Iterable, Optional

from testfocus.bridge.models import AssertionFailure, BridgeStream, HttpEvent, HttpEventKind
from testfocus.config import BRIDGE_MARKER

logger = logging.getLogger(__name__)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _status(value: Any) -> Optional[int]:
    number = _number(value)
    return int(number) if number is not None else None


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _http_event(
    data: dict,
    kind: HttpEventKind,
    sequence: int,
    owner: Optional[dict] = None,
) -> HttpEvent:
    owner = owner if owner is not None else data
    return HttpEvent(
        timestamp_ms=_number(data.get("timestampMs")),
        kind=kind,
        method=_text(data.get("method")),
        url=_text(data.get("url")),
        route=_text(data.get("route")),
        status_code=_status(data.get("statusCode")) if kind == HttpEventKind.RESPONSE else None,
        duration_ms=_number(data.get("durationMs")),
        content_type=_text(data.get("contentType")),
        request_id=_text(data.get("requestId")),
        json_body=data.get("json"),
        body_preview=_text(data.get("bodyPreview")),
        test_path=_text(owner.get("testPath")),
        test_name=_text(owner.get("currentTestName")),
        sequence=sequence,
    )


def _assertion(data: dict) -> AssertionFailure:
    return AssertionFailure(
        timestamp_ms=_number(data.get("timestampMs")),
        matcher=_text(data.get("matcher")),
        expected_number=_number(data.get("expectedNumber")),
        received_number=_number(data.get("receivedNumber")),
        message=_text(data.get("message")) or "",
        stack=_text(data.get("stack")),
        test_path=_text(data.get("testPath")),
        test_name=_text(data.get("currentTestName")),
        expected_preview=_text(data.get("expectedPreview")),
        actual_preview=_text(data.get("actualPreview")),
    )


def parse_event_payload(line: str, marker: str = BRIDGE_MARKER) -> Optional[dict]:
    """Decode the JSON object following the last marker on a line."""
    if marker not in line:
        return None
    payload = line.rsplit(marker, 1)[1].strip()
    try:
        data = json.loads(payload)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_bridge_lines(lines: Iterable[str], marker: str = BRIDGE_MARKER) -> BridgeStream:
    """Collect HTTP events and assertion failures from output lines.

    Lines without the marker, with malformed JSON, or with an unknown
    ``type`` are dropped.
    """
    stream = BridgeStream()
    dropped = 0

    for line in lines:
        data = parse_event_payload(line, marker)
        if data is None:
            if marker in line:
                dropped += 1
            continue

        kind = data.get("type")
        if kind == "httpResponse":
            stream.http.append(_http_event(data, HttpEventKind.RESPONSE, len(stream.http)))
        elif kind == "httpAbort":
            stream.http.append(_http_event(data, HttpEventKind.ABORT, len(stream.http)))
        elif kind == "httpResponseBatch":
            batch = data.get("events")
            for item in batch if isinstance(batch, list) else []:
                if isinstance(item, dict):
                    stream.http.append(
                        _http_event(item, HttpEventKind.RESPONSE, len(stream.http), owner=data)
                    )
        elif kind == "assertionFailure":
            stream.assertions.append(_assertion(data))
        elif isinstance(kind, str) and kind:
            stream.other_counts[kind] = stream.other_counts.get(kind, 0) + 1
        else:
            dropped += 1

    if dropped:
        logger.debug("Dropped %d malformed bridge lines", dropped)
    return stream


def parse_bridge_text(text: str, marker: str = BRIDGE_MARKER) -> BridgeStream:
    """Parse a whole captured stream."""
    return parse_bridge_lines(text.splitlines(), marker)
