"""Request record and issue dataclasses shared by every detection pass."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RequestType(str, Enum):
    BID_REQUEST = "bid_request"
    BID_RESPONSE = "bid_response"
    IMPRESSION = "impression"
    CLICK = "click"
    VIEWABILITY = "viewability"
    SYNC = "sync"
    CREATIVE = "creative"
    CONFIG = "config"
    UNKNOWN = "unknown"


class IssueType(str, Enum):
    TIMEOUT = "timeout"
    SLOW_RESPONSE = "slow_response"
    FAILED = "failed"
    DUPLICATE_PIXEL = "duplicate_pixel"
    OUT_OF_ORDER = "out_of_order"


class IssueSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


ISSUE_LABELS = {
    IssueType.TIMEOUT: "Timeout",
    IssueType.FAILED: "Failed",
    IssueType.DUPLICATE_PIXEL: "Duplicate",
    IssueType.OUT_OF_ORDER: "Out of Order",
    IssueType.SLOW_RESPONSE: "Slow",
}


@dataclass(frozen=True)
class Vendor:
    id: str
    name: str
    category: str = "Other"


@dataclass(frozen=True)
class DecodedPayload:
    type: str    # "json", "urlParams", "base64", "openrtb", "text", "unknown"
    data: Any
    raw: str = ""


@dataclass(frozen=True)
class Issue:
    type: IssueType
    severity: IssueSeverity
    message: str
    details: str = ""
    related_request_ids: tuple[str, ...] | None = None


@dataclass
class RequestRecord:
    id: str
    url: str
    timestamp: float                # ms since epoch
    completed: bool = False
    duration: float | None = None   # ms, set on completion
    status_code: int | None = None
    error: str | None = None
    vendor: Vendor | None = None
    vendor_request_type: RequestType | None = None
    method: str = "GET"
    decoded_payload: DecodedPayload | None = None
    request_body: DecodedPayload | None = None
    response_payload: DecodedPayload | None = None
    issues: list[Issue] = field(default_factory=list)


def _parse_request_type(value) -> RequestType | None:
    if value is None:
        return None
    try:
        return RequestType(value)
    except ValueError:
        return RequestType.UNKNOWN


def _parse_payload(data) -> DecodedPayload | None:
    if not data:
        return None
    return DecodedPayload(
        type=data.get("type", "unknown"),
        data=data.get("data"),
        raw=data.get("raw", ""),
    )


def issue_from_dict(data: dict) -> Issue:
    related = data.get("relatedRequestIds")
    return Issue(
        type=IssueType(data["type"]),
        severity=IssueSeverity(data["severity"]),
        message=data.get("message", ""),
        details=data.get("details", ""),
        related_request_ids=tuple(related) if related else None,
    )


def issue_to_dict(issue: Issue) -> dict[str, Any]:
    """Wire form of an issue; relatedRequestIds is dropped when absent."""
    result = {
        "type": issue.type.value,
        "severity": issue.severity.value,
        "message": issue.message,
        "details": issue.details,
    }
    if issue.related_request_ids:
        result["relatedRequestIds"] = list(issue.related_request_ids)
    return result


def record_from_dict(data: dict) -> RequestRecord:
    """Build a RequestRecord from the capture collaborator's camelCase JSON.

    Raises KeyError/ValueError/TypeError when required fields are missing or
    malformed. Unrecognised vendorRequestType values map to UNKNOWN.
    """
    vendor_data = data.get("vendor")
    vendor = None
    if vendor_data:
        vendor = Vendor(
            id=str(vendor_data["id"]),
            name=vendor_data.get("name", vendor_data["id"]),
            category=vendor_data.get("category", "Other"),
        )

    status_code = data.get("statusCode")
    duration = data.get("duration")
    return RequestRecord(
        id=str(data["id"]),
        url=data["url"],
        timestamp=float(data["timestamp"]),
        completed=bool(data.get("completed", False)),
        duration=float(duration) if duration is not None else None,
        status_code=int(status_code) if status_code is not None else None,
        error=data.get("error"),
        vendor=vendor,
        vendor_request_type=_parse_request_type(data.get("vendorRequestType")),
        method=data.get("method", "GET"),
        decoded_payload=_parse_payload(data.get("decodedPayload")),
        request_body=_parse_payload(data.get("requestBody")),
        response_payload=_parse_payload(data.get("responsePayload")),
        issues=[issue_from_dict(i) for i in data.get("issues") or []],
    )


def record_to_dict(record: RequestRecord) -> dict[str, Any]:
    """Convert a RequestRecord to camelCase JSON, dropping None values."""
    result = {
        "id": record.id,
        "url": record.url,
        "method": record.method,
        "timestamp": record.timestamp,
        "completed": record.completed,
        "duration": record.duration,
        "statusCode": record.status_code,
        "error": record.error,
        "vendorRequestType": (
            record.vendor_request_type.value if record.vendor_request_type else None
        ),
        "issues": [issue_to_dict(i) for i in record.issues],
    }
    if record.vendor is not None:
        result["vendor"] = {
            "id": record.vendor.id,
            "name": record.vendor.name,
            "category": record.vendor.category,
        }
    return {k: v for k, v in result.items() if v is not None}
