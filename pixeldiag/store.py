"""Thread-safe request store — owns the record collection for one session.

Records are mutated only here: lifecycle transitions (start, complete,
fail) and append-only issue merges. Correlation passes read a copied
snapshot so they never see the collection change mid-pass.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import replace
from typing import Iterable

from pixeldiag.config import DEFAULT_THRESHOLDS, Thresholds
from pixeldiag.correlator import detect_cross_request_issues
from pixeldiag.detectors import detect_request_issues, detect_timeout, now_ms
from pixeldiag.models import Issue, IssueType, RequestRecord
from pixeldiag.search import matches_payload_search
from pixeldiag.summary import IssueSummary, get_issue_summary

logger = logging.getLogger(__name__)


class DuplicateRequestError(ValueError):
    """Raised when a record id is already present in the store."""


class RequestStore:
    def __init__(
        self,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        placement_params: Iterable[str] | None = None,
        max_records: int | None = None,
        auto_analyze: bool = False,
    ):
        self._thresholds = thresholds
        self._placement_params = tuple(placement_params) if placement_params else None
        self._max_records = max_records
        self._auto_analyze = auto_analyze
        self._records: OrderedDict[str, RequestRecord] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    def start(self, record: RequestRecord, now: float | None = None) -> RequestRecord:
        """Add a newly observed request and run the per-record checks on it."""
        with self._lock:
            if record.id in self._records:
                raise DuplicateRequestError(f"Request id already tracked: {record.id}")
            issues = detect_request_issues(record, now=now, thresholds=self._thresholds)
            self._records[record.id] = record
            self._append_issues(record, issues)
            if self._max_records is not None:
                while len(self._records) > self._max_records:
                    evicted_id, _ = self._records.popitem(last=False)
                    logger.debug("Evicted oldest request %s", evicted_id)

        if self._auto_analyze:
            self.analyze()
        return record

    def complete(self, request_id: str, status_code: int | None, duration: float | None) -> RequestRecord | None:
        """Mark a pending request completed. Unknown or finished ids are ignored."""
        with self._lock:
            record = self._records.get(request_id)
            if record is None or record.completed:
                return None
            self._transition(record, completed=True, status_code=status_code, duration=duration)

        if self._auto_analyze:
            self.analyze()
        return record

    def fail(self, request_id: str, error: str) -> RequestRecord | None:
        """Mark a pending request as failed at the transport level."""
        with self._lock:
            record = self._records.get(request_id)
            if record is None or record.completed:
                return None
            self._transition(record, completed=True, error=error)

        if self._auto_analyze:
            self.analyze()
        return record

    def _transition(self, record: RequestRecord, **changes):
        # Checks run against the updated copy; if they raise, the record is untouched
        issues = detect_request_issues(replace(record, **changes), thresholds=self._thresholds)
        for name, value in changes.items():
            setattr(record, name, value)
        self._append_issues(record, issues)

    @staticmethod
    def _append_issues(record: RequestRecord, issues: list[Issue]):
        if issues:
            record.issues.extend(issues)
            logger.debug("Request %s: %d issue(s)", record.id, len(issues))

    def analyze(self) -> dict[str, list[Issue]]:
        """Run the cross-request pass and merge its issues into the records.

        An issue is skipped when its record already carries an issue of the
        same type, so re-running on an unchanged store appends nothing.
        Returns the issues actually appended, keyed by record id.
        """
        snapshot = self.snapshot()
        found = detect_cross_request_issues(snapshot, self._thresholds, self._placement_params)

        appended: dict[str, list[Issue]] = {}
        with self._lock:
            for request_id, issues in found.items():
                record = self._records.get(request_id)
                if record is None:
                    continue
                existing_types = {issue.type for issue in record.issues}
                new_issues = [issue for issue in issues if issue.type not in existing_types]
                if new_issues:
                    record.issues.extend(new_issues)
                    appended[request_id] = new_issues

        if appended:
            logger.info("Cross-request analysis flagged %d request(s)", len(appended))
        return appended

    def sweep_timeouts(self, now: float | None = None) -> list[str]:
        """Attach a timeout issue to pending requests past the threshold."""
        if now is None:
            now = now_ms()
        flagged = []
        with self._lock:
            for record in self._records.values():
                if any(issue.type == IssueType.TIMEOUT for issue in record.issues):
                    continue
                issue = detect_timeout(record, now=now, thresholds=self._thresholds)
                if issue is not None:
                    record.issues.append(issue)
                    flagged.append(record.id)
        if flagged:
            logger.info("Timed out: %s", ", ".join(flagged))
        return flagged

    def snapshot(self) -> list[RequestRecord]:
        """Records in insertion order, as a list detached from the store."""
        with self._lock:
            return list(self._records.values())

    def get(self, request_id: str) -> RequestRecord | None:
        with self._lock:
            return self._records.get(request_id)

    def filter(
        self,
        issue_types: Iterable[IssueType] | None = None,
        only_issues: bool = False,
        query: str | None = None,
        use_regex: bool = False,
    ) -> list[RequestRecord]:
        """Records matching all active criteria."""
        wanted = set(issue_types) if issue_types else None
        result = []
        for record in self.snapshot():
            if only_issues and not record.issues:
                continue
            if wanted and not any(issue.type in wanted for issue in record.issues):
                continue
            if query and not matches_payload_search(record, query, use_regex):
                continue
            result.append(record)
        return result

    def summary(self) -> IssueSummary:
        return get_issue_summary(self.snapshot())

    def clear(self):
        """Drop every record (session reset)."""
        with self._lock:
            count = len(self._records)
            self._records.clear()
        logger.info("Cleared %d request(s)", count)

    def __len__(self):
        with self._lock:
            return len(self._records)
