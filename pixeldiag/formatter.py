"""Output formatters — text, JSON (NDJSON), colorized (ANSI), session export."""

import json
from datetime import datetime, timezone
from typing import Callable, Iterable

from pixeldiag.models import ISSUE_LABELS, IssueSeverity, RequestRecord, issue_to_dict, record_to_dict
from pixeldiag.summary import get_issue_summary, summary_to_dict

# ANSI color codes
COLORS = {
    IssueSeverity.WARNING: "\033[33m",  # yellow
    IssueSeverity.ERROR: "\033[31m",    # red
}
RESET = "\033[0m"


def _vendor_name(record: RequestRecord) -> str:
    return record.vendor.name if record.vendor else "-"


def format_text(record: RequestRecord) -> str:
    """One line per issue: id, severity, label, message, details."""
    lines = []
    for issue in record.issues:
        lines.append(
            f"{record.id} [{issue.severity.value.upper()}] {ISSUE_LABELS[issue.type]}: "
            f"{issue.message} - {issue.details} ({_vendor_name(record)} {record.url})"
        )
    return "\n".join(lines)


def format_color(record: RequestRecord) -> str:
    """Like format_text, with the severity colored."""
    lines = []
    for issue in record.issues:
        color = COLORS.get(issue.severity, "")
        lines.append(
            f"{record.id} [{color}{issue.severity.value.upper()}{RESET}] {ISSUE_LABELS[issue.type]}: "
            f"{issue.message} - {issue.details} ({_vendor_name(record)} {record.url})"
        )
    return "\n".join(lines)


def format_json(record: RequestRecord) -> str:
    """Return NDJSON — one JSON object per issue, compatible with jq."""
    return "\n".join(
        json.dumps({"requestId": record.id, "url": record.url, **issue_to_dict(issue)})
        for issue in record.issues
    )


def get_formatter(output_format: str = "text", color: bool = False) -> Callable[[RequestRecord], str]:
    """Factory that returns the right formatter based on args."""
    if output_format == "json":
        return format_json
    if color:
        return format_color
    return format_text


def export_session(records: Iterable[RequestRecord]) -> dict:
    """Session export document: summary plus every record with its issues."""
    records = list(records)
    return {
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "requestCount": len(records),
        "issueSummary": summary_to_dict(get_issue_summary(records)),
        "requests": [record_to_dict(r) for r in records],
    }
