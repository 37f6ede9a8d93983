"""Issue summary — totals by type and severity over attached issues."""

import json
from dataclasses import dataclass, field
from typing import Iterable

from pixeldiag.models import ISSUE_LABELS, IssueSeverity, IssueType, RequestRecord


def _zero_by_type() -> dict[IssueType, int]:
    return {t: 0 for t in IssueType}


def _zero_by_severity() -> dict[IssueSeverity, int]:
    return {s: 0 for s in IssueSeverity}


@dataclass
class IssueSummary:
    total: int = 0
    by_type: dict[IssueType, int] = field(default_factory=_zero_by_type)
    by_severity: dict[IssueSeverity, int] = field(default_factory=_zero_by_severity)


def get_issue_summary(records: Iterable[RequestRecord]) -> IssueSummary:
    """Count the issues already attached to records. Does not run detection."""
    summary = IssueSummary()
    for record in records:
        for issue in record.issues:
            summary.total += 1
            summary.by_type[issue.type] += 1
            summary.by_severity[issue.severity] += 1
    return summary


def summary_to_dict(summary: IssueSummary) -> dict:
    return {
        "total": summary.total,
        "byType": {t.value: n for t, n in summary.by_type.items()},
        "bySeverity": {s.value: n for s, n in summary.by_severity.items()},
    }


def format_summary_text(summary: IssueSummary) -> str:
    """Human-readable summary."""
    lines = [f"Total issues: {summary.total}", ""]

    lines.append("By type:")
    for issue_type, count in summary.by_type.items():
        lines.append(f"  {ISSUE_LABELS[issue_type]:14s} {count}")
    lines.append("")

    lines.append("By severity:")
    for severity, count in summary.by_severity.items():
        lines.append(f"  {severity.value:14s} {count}")

    return "\n".join(lines)


def format_summary_json(summary: IssueSummary) -> str:
    return json.dumps(summary_to_dict(summary), indent=2)
