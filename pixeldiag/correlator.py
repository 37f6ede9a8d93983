"""Cross-request detection: duplicate pixels, then beacon ordering."""

from typing import Iterable

from pixeldiag.config import DEFAULT_THRESHOLDS, Thresholds
from pixeldiag.duplicates import detect_duplicate_pixels
from pixeldiag.models import Issue, RequestRecord
from pixeldiag.ordering import detect_out_of_order_beacons


def detect_cross_request_issues(
    records: Iterable[RequestRecord],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    params: Iterable[str] | None = None,
) -> dict[str, list[Issue]]:
    """Run both correlators over one snapshot and merge their results by id.

    The caller owns appending these to each record's issue list.
    """
    snapshot = list(records)
    issues_by_request: dict[str, list[Issue]] = {}

    for request_id, issue in detect_duplicate_pixels(snapshot, thresholds, params).items():
        issues_by_request.setdefault(request_id, []).append(issue)

    for request_id, issue in detect_out_of_order_beacons(snapshot).items():
        issues_by_request.setdefault(request_id, []).append(issue)

    return issues_by_request
