"""Duplicate beacon detection over a snapshot of records."""

import logging
from collections import defaultdict
from typing import Iterable

from pixeldiag.config import DEFAULT_THRESHOLDS, Thresholds
from pixeldiag.detectors import round_half_up
from pixeldiag.models import Issue, IssueSeverity, IssueType, RequestRecord
from pixeldiag.signature import pixel_signature

logger = logging.getLogger(__name__)


def group_by_signature(
    records: Iterable[RequestRecord],
    params: Iterable[str] | None = None,
) -> dict[str, list[RequestRecord]]:
    """Bucket eligible records by pixel signature, preserving input order."""
    if params is not None:
        params = tuple(params)
    groups: dict[str, list[RequestRecord]] = defaultdict(list)
    for record in records:
        signature = pixel_signature(record, params)
        if signature is None:
            continue
        groups[signature].append(record)
    return groups


def detect_duplicate_pixels(
    records: Iterable[RequestRecord],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    params: Iterable[str] | None = None,
) -> dict[str, Issue]:
    """Flag beacons that repeat their predecessor within the duplicate window.

    Each signature group is sorted by timestamp and only adjacent pairs are
    compared; the issue lands on the later record of the pair.
    """
    issues: dict[str, Issue] = {}

    for signature, group in group_by_signature(records, params).items():
        if len(group) < 2:
            continue

        ordered = sorted(group, key=lambda r: r.timestamp)
        for previous, current in zip(ordered, ordered[1:]):
            gap = current.timestamp - previous.timestamp
            if gap >= thresholds.duplicate_window_ms:
                continue

            request_type = current.vendor_request_type.value
            vendor_name = current.vendor.name if current.vendor and current.vendor.name else "Unknown"
            issues[current.id] = Issue(
                type=IssueType.DUPLICATE_PIXEL,
                severity=IssueSeverity.WARNING,
                message="Duplicate pixel detected",
                details=(
                    f"{request_type} pixel fired {round_half_up(gap)}ms after previous "
                    f"(vendor: {vendor_name})"
                ),
                related_request_ids=(previous.id, current.id),
            )
            logger.debug("Duplicate %s: %s -> %s (%s)", request_type, previous.id, current.id, signature)

    return issues
