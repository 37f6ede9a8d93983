"""Pixel signatures — grouping keys for duplicate beacon detection."""

from typing import Iterable
from urllib.parse import parse_qs, urlsplit

from pixeldiag.models import RequestRecord, RequestType

# Query parameters that distinguish one placement/creative from another on
# otherwise identical beacon URLs.
PLACEMENT_IDENTIFIER_PARAMS = (
    # Network / placement
    "nid",
    "v",
    "pid",
    "placement",
    "placement_id",
    "placementid",
    "slot",
    "slotid",
    "slot_id",
    "zone",
    "zoneid",
    "zone_id",
    "pos",
    # Creative
    "cid",
    "creative",
    "creative_id",
    "creativeid",
    "aid",
    "ad_id",
    "adid",
    # Line item / campaign
    "lid",
    "line_item_id",
    "lineitemid",
    "campaign",
    "campaign_id",
    "campaignid",
    # Tag
    "tag_id",
    "tagid",
    "tag",
    # Size
    "size",
    "sz",
)

SIGNED_REQUEST_TYPES = (RequestType.IMPRESSION, RequestType.VIEWABILITY)


def pixel_signature(
    record: RequestRecord,
    params: Iterable[str] | None = None,
) -> str | None:
    """Return ``vendorId:path[:sortedIdentifiers]`` or None.

    Only impression and viewability beacons get a signature. Malformed URLs
    yield None so the record simply drops out of duplicate analysis.
    """
    if record.vendor_request_type not in SIGNED_REQUEST_TYPES:
        return None

    try:
        parts = urlsplit(record.url)
        query = parse_qs(parts.query, keep_blank_values=True)
    except (ValueError, TypeError, AttributeError):
        return None
    if not parts.scheme:
        return None

    vendor_id = record.vendor.id if record.vendor and record.vendor.id else "unknown"
    path = parts.path or "/"

    identifiers = []
    for name in params if params is not None else PLACEMENT_IDENTIFIER_PARAMS:
        values = query.get(name)
        if values and values[0]:
            identifiers.append(f"{name}={values[0]}")

    if not identifiers:
        return f"{vendor_id}:{path}"
    return f"{vendor_id}:{path}:{'&'.join(sorted(identifiers))}"
