"""Correlation of assertion failures with the HTTP exchange that caused them."""

import dataclasses
import logging
import math
from typing import Optional, Sequence

from testfocus.bridge.hints import (
    infer_http_numbers_from_text,
    is_http_status_number,
    is_transport_error,
    parse_method_path_from_title,
    route_similarity_score,
    time_delta,
)
from testfocus.bridge.models import AssertionFailure, CorrelationResult, HttpEvent, TestIdentity
from testfocus.config import CorrelationConfig

logger = logging.getLogger(__name__)

STATUS_RECEIVED_SCORE = 1500
STATUS_EXPECTED_SCORE = 1200
STATUS_ERROR_SCORE = 800
ROUTE_SPECIFICITY_SCORE = 80
URL_SPECIFICITY_SCORE = 40

NO_MATCH_MESSAGE = "No relevant HTTP exchange found."
TRANSPORT_MISS_MESSAGE = "Transport error; no matching HTTP exchange in window."


def names_match(left: Optional[str], right: Optional[str]) -> bool:
    """Fuzzy test-name equality that tolerates nested describe prefixes."""
    return bool(left and right and (left == right or left in right or right in left))


class HttpCorrelationEngine:
    """Picks the single captured exchange that best explains a failure."""

    def __init__(self, config: Optional[CorrelationConfig] = None):
        self.config = config or CorrelationConfig()

    def window_for(self, failure: AssertionFailure) -> int:
        if is_transport_error(failure.message):
            return self.config.strict_window_ms
        return self.config.window_ms

    def threshold_for(self, failure: AssertionFailure) -> int:
        if is_transport_error(failure.message):
            return self.config.transport_threshold
        return self.config.min_score

    def score(
        self,
        failure: AssertionFailure,
        event: HttpEvent,
        hint_method: Optional[str] = None,
        hint_path: Optional[str] = None,
    ) -> float:
        """Sum of time, status, route and specificity terms for one event."""
        window = self.window_for(failure)
        delta = time_delta(failure.timestamp_ms, event.timestamp_ms)
        time_score = max(0.0, window - delta) if delta is not None else 0.0

        status = event.status_code
        if failure.received_number is not None and status == failure.received_number:
            status_score = STATUS_RECEIVED_SCORE
        elif failure.expected_number is not None and status == failure.expected_number:
            status_score = STATUS_EXPECTED_SCORE
        elif (status or 0) >= 400:
            status_score = STATUS_ERROR_SCORE
        else:
            status_score = 0

        route_score = route_similarity_score(hint_method, hint_path, event)

        if event.route:
            specificity = ROUTE_SPECIFICITY_SCORE
        elif event.url:
            specificity = URL_SPECIFICITY_SCORE
        else:
            specificity = 0

        return time_score + status_score + route_score + specificity

    def candidate_pool(
        self,
        failure: AssertionFailure,
        events: Sequence[HttpEvent],
        hint: Optional[TestIdentity] = None,
    ) -> list[HttpEvent]:
        """First non-empty pool: same test, then same file in window, then any in window."""
        hint = hint or TestIdentity()

        def same_test(test_path: Optional[str], test_name: Optional[str], event: HttpEvent) -> bool:
            return test_path == event.test_path and names_match(test_name, event.test_name)

        pool = [
            event
            for event in events
            if same_test(failure.test_path, failure.test_name, event)
            or same_test(hint.test_path, hint.test_name, event)
        ]
        if pool:
            return pool

        window = self.window_for(failure)

        def in_window(event: HttpEvent) -> bool:
            delta = time_delta(failure.timestamp_ms, event.timestamp_ms)
            return delta is not None and delta <= window

        test_path = hint.test_path or failure.test_path
        pool = [event for event in events if event.test_path == test_path and in_window(event)]
        if pool:
            return pool

        return [event for event in events if in_window(event)]

    def explain(
        self,
        failure: AssertionFailure,
        events: Sequence[HttpEvent],
        hint: Optional[TestIdentity] = None,
    ) -> CorrelationResult:
        """Correlate a failure and report how the decision was made."""
        failure = self._with_inferred_numbers(failure)
        pool = self.candidate_pool(failure, events, hint)

        if is_transport_error(failure.message):
            aborts = [event for event in pool if event.is_abort]
            if aborts:
                nearest = min(aborts, key=lambda event: self._delta_or_inf(failure, event))
                logger.debug("Transport failure matched abort #%d", nearest.sequence)
                return CorrelationResult(event=nearest, reason="abort")
            return CorrelationResult(
                reason="transport-miss",
                message=TRANSPORT_MISS_MESSAGE if self.config.show_miss else None,
            )

        responses = [event for event in pool if not event.is_abort]
        if not responses:
            return self._no_match()

        title = hint.title if hint and hint.title else failure.test_name
        hint_method, hint_path = parse_method_path_from_title(title)

        # sorted() is stable, so equal scores keep emission order
        scored = sorted(
            ((self.score(failure, event, hint_method, hint_path), event) for event in responses),
            key=lambda pair: pair[0],
            reverse=True,
        )
        best_score, best = scored[0]
        threshold = self.threshold_for(failure)
        if best_score < threshold:
            logger.debug("Best score %.0f below threshold %d", best_score, threshold)
            return self._no_match(score=best_score)
        return CorrelationResult(event=best, score=best_score, reason="matched")

    def correlate(
        self,
        failure: AssertionFailure,
        events: Sequence[HttpEvent],
        hint: Optional[TestIdentity] = None,
    ) -> Optional[HttpEvent]:
        """Return the exchange that explains the failure, or None."""
        return self.explain(failure, events, hint).event

    def _no_match(self, score: Optional[float] = None) -> CorrelationResult:
        return CorrelationResult(
            score=score,
            reason="no-match",
            message=NO_MATCH_MESSAGE if self.config.show_miss else None,
        )

    @staticmethod
    def _delta_or_inf(failure: AssertionFailure, event: HttpEvent) -> float:
        delta = time_delta(failure.timestamp_ms, event.timestamp_ms)
        return delta if delta is not None else math.inf

    @staticmethod
    def _with_inferred_numbers(failure: AssertionFailure) -> AssertionFailure:
        if is_http_status_number(failure.expected_number) or is_http_status_number(failure.received_number):
            return failure
        expected, received = infer_http_numbers_from_text(failure.message.splitlines())
        if expected is None:
            return failure
        return dataclasses.replace(failure, expected_number=expected, received_number=received)


def correlate(
    failure: AssertionFailure,
    events: Sequence[HttpEvent],
    hint: Optional[TestIdentity] = None,
    config: Optional[CorrelationConfig] = None,
) -> Optional[HttpEvent]:
    """Convenience wrapper around :class:`HttpCorrelationEngine`."""
    return HttpCorrelationEngine(config).correlate(failure, events, hint)
