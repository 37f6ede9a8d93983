"""Per-record checks — timeout, slow response, failed request.

Each check looks at a single record and returns an Issue or None.
"""

import math
import time

from pixeldiag.config import DEFAULT_THRESHOLDS, Thresholds
from pixeldiag.models import Issue, IssueSeverity, IssueType, RequestRecord


def now_ms() -> float:
    return time.time() * 1000


def round_half_up(value: float) -> int:
    """Round to the nearest integer with exact halves going up (12.5 -> 13)."""
    return math.floor(value + 0.5)


def detect_timeout(
    record: RequestRecord,
    now: float | None = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Issue | None:
    """Flag a request still pending after the timeout threshold."""
    if record.completed or record.duration is not None:
        return None

    if now is None:
        now = now_ms()
    elapsed = now - record.timestamp
    if elapsed <= thresholds.timeout_ms:
        return None

    return Issue(
        type=IssueType.TIMEOUT,
        severity=IssueSeverity.ERROR,
        message="Request timed out",
        details=f"Request has been pending for {round_half_up(elapsed / 1000)}s",
    )


def detect_slow_response(
    record: RequestRecord,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Issue | None:
    """Flag a completed request whose duration exceeds the slow threshold."""
    if not record.completed or record.duration is None:
        return None
    if record.duration <= thresholds.slow_response_ms:
        return None

    return Issue(
        type=IssueType.SLOW_RESPONSE,
        severity=IssueSeverity.WARNING,
        message="Slow response time",
        details=(
            f"Response took {round_half_up(record.duration)}ms "
            f"(threshold: {round_half_up(thresholds.slow_response_ms)}ms)"
        ),
    )


def detect_failed_request(record: RequestRecord) -> Issue | None:
    """Flag transport errors and HTTP 4xx/5xx responses.

    A transport error wins over the status code when both are present.
    """
    if record.error:
        return Issue(
            type=IssueType.FAILED,
            severity=IssueSeverity.ERROR,
            message="Request failed",
            details=record.error,
        )

    code = record.status_code
    if code is not None and code >= 400:
        return Issue(
            type=IssueType.FAILED,
            severity=IssueSeverity.ERROR if code >= 500 else IssueSeverity.WARNING,
            message=f"HTTP {code} error",
            details=f"Request returned status code {code}",
        )

    return None


def detect_request_issues(
    record: RequestRecord,
    now: float | None = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> list[Issue]:
    """Run all per-record checks in order: timeout, slow, failed."""
    candidates = (
        detect_timeout(record, now=now, thresholds=thresholds),
        detect_slow_response(record, thresholds=thresholds),
        detect_failed_request(record),
    )
    return [issue for issue in candidates if issue is not None]
