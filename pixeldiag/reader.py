"""Capture file reading — JSON array, {"requests": [...]} document, or NDJSON."""

import glob
import json
import logging
import os
from typing import Generator

from pixeldiag.models import RequestRecord, record_from_dict

logger = logging.getLogger(__name__)


def expand_paths(raw_paths: list[str]) -> list[str]:
    """Expand globs, deduplicate, and validate that files exist.

    Raises FileNotFoundError if a non-glob path doesn't exist.
    Raises FileNotFoundError if expansion produces zero files.
    """
    expanded = []
    seen = set()

    for raw in raw_paths:
        if any(c in raw for c in ("*", "?", "[")):
            matches = sorted(glob.glob(raw))
            for m in matches:
                if m not in seen:
                    seen.add(m)
                    expanded.append(m)
        else:
            if not os.path.isfile(raw):
                raise FileNotFoundError(f"File not found: {raw}")
            if raw not in seen:
                seen.add(raw)
                expanded.append(raw)

    if not expanded:
        raise FileNotFoundError("No capture files found matching the given paths")

    return expanded


def _iter_raw_items(text: str, path: str) -> Generator[dict, None, None]:
    stripped = text.lstrip()
    if stripped.startswith("["):
        yield from json.loads(stripped)
        return
    if stripped.startswith("{"):
        try:
            document = json.loads(stripped)
        except json.JSONDecodeError:
            document = None
        if isinstance(document, dict) and "requests" in document:
            yield from document["requests"]
            return

    # NDJSON: one record per line
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("%s:%d: invalid JSON (%s), skipping", path, lineno, exc)


def read_records(path: str) -> Generator[RequestRecord, None, None]:
    """Yield RequestRecords from one capture file, skipping malformed items."""
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    for index, item in enumerate(_iter_raw_items(text, path)):
        if not isinstance(item, dict):
            logger.warning("%s: item %d is not an object, skipping", path, index)
            continue
        try:
            yield record_from_dict(item)
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("%s: item %d is not a valid record (%s), skipping", path, index, exc)


def load_records(paths: list[str]) -> list[RequestRecord]:
    """Read every record from the given files, in file then item order."""
    records = []
    for path in paths:
        records.extend(read_records(path))
    return records
