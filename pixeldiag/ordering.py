"""Out-of-order beacon detection — viewability firing before impression.

The pass walks records in the order the caller supplies them and keeps one
BeaconSequence per vendor. Results depend on that order, not only on
timestamps. Only the most recent unmatched viewability per vendor is kept;
an earlier one is dropped when a newer one arrives before any impression.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from pixeldiag.detectors import round_half_up
from pixeldiag.models import Issue, IssueSeverity, IssueType, RequestRecord, RequestType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeaconRef:
    request_id: str
    timestamp: float


@dataclass
class BeaconSequence:
    impression: BeaconRef | None = None
    viewability: BeaconRef | None = None


def _out_of_order_issue(vendor_name: str, gap: float, viewability_id: str, impression_id: str) -> Issue:
    return Issue(
        type=IssueType.OUT_OF_ORDER,
        severity=IssueSeverity.ERROR,
        message="Viewability fired before impression",
        details=(
            f"{vendor_name}: Viewability beacon fired {round_half_up(gap)}ms before impression pixel. "
            "This may cause measurement discrepancies."
        ),
        related_request_ids=(viewability_id, impression_id),
    )


def detect_out_of_order_beacons(records: Iterable[RequestRecord]) -> dict[str, Issue]:
    """Return a map of record id to out_of_order issue."""
    issues: dict[str, Issue] = {}
    sequences: dict[str, BeaconSequence] = {}

    for record in records:
        if record.vendor is None:
            continue

        sequence = sequences.setdefault(record.vendor.id, BeaconSequence())

        if record.vendor_request_type == RequestType.IMPRESSION:
            pending = sequence.viewability
            if pending is not None and pending.timestamp < record.timestamp:
                issues[pending.request_id] = _out_of_order_issue(
                    record.vendor.name,
                    record.timestamp - pending.timestamp,
                    pending.request_id,
                    record.id,
                )
                logger.debug("Viewability %s precedes impression %s", pending.request_id, record.id)
            sequence.impression = BeaconRef(record.id, record.timestamp)

        elif record.vendor_request_type == RequestType.VIEWABILITY:
            impression = sequence.impression
            if impression is not None and record.timestamp < impression.timestamp:
                issues[record.id] = _out_of_order_issue(
                    record.vendor.name,
                    impression.timestamp - record.timestamp,
                    record.id,
                    impression.request_id,
                )
                logger.debug("Viewability %s precedes impression %s", record.id, impression.request_id)
            elif impression is None:
                sequence.viewability = BeaconRef(record.id, record.timestamp)

    return issues
