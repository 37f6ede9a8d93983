"""Free-text / regex search over a record's decoded payloads."""

import json
import re

from pixeldiag.models import DecodedPayload, RequestRecord


def serialize_payload(payload: DecodedPayload | None) -> str:
    """Flatten a decoded payload into one searchable string."""
    if payload is None:
        return ""
    if not payload.data:
        return payload.raw or ""

    if payload.type in ("json", "openrtb"):
        try:
            return json.dumps(payload.data, separators=(",", ":"))
        except (TypeError, ValueError):
            return payload.raw or ""

    if payload.type == "urlParams":
        if isinstance(payload.data, dict):
            pairs = []
            for key, value in payload.data.items():
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, separators=(",", ":"))
                pairs.append(f"{key}={value}")
            return "&".join(pairs)
        return payload.raw or ""

    if payload.type in ("base64", "text"):
        if isinstance(payload.data, str):
            return payload.data
        return payload.raw or ""

    return payload.raw or ""


def get_request_payload_strings(record: RequestRecord) -> list[str]:
    payloads = (record.decoded_payload, record.request_body, record.response_payload)
    strings = [serialize_payload(p) for p in payloads if p is not None]
    return [s for s in strings if s]


def matches_payload_search(record: RequestRecord, query: str, use_regex: bool = False) -> bool:
    """True if the record's payloads match the query (case-insensitive).

    An empty query matches everything; a record without payloads never
    matches a non-empty query. An invalid regex falls back to a plain
    substring match.
    """
    if not query.strip():
        return True

    payload_strings = get_request_payload_strings(record)
    if not payload_strings:
        return False

    search_text = "\n".join(payload_strings)

    if use_regex:
        try:
            return re.search(query, search_text, re.IGNORECASE) is not None
        except re.error:
            pass
    return query.lower() in search_text.lower()
