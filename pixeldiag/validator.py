import json
import os
from collections import defaultdict

import jsonschema

DEFAULT_SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schemas", "request_record.json")

# Body kinds the ingest API accepts; the lifecycle updates live under $defs
BODY_KINDS = ("record", "completion", "failure")


class RecordValidator:
    """Checks wire-form bodies posted to the ingest API.

    ``record`` bodies are full request records (the schema root).
    ``completion`` and ``failure`` are the follow-up updates for a tracked
    request, described by the schema's ``$defs`` of the same names.
    """

    def __init__(self, schema_path=None):
        with open(schema_path or DEFAULT_SCHEMA_PATH, "r", encoding="utf-8") as f:
            schema = json.load(f)

        defs = schema.get("$defs", {})
        self._validators = {"record": jsonschema.Draft202012Validator(schema)}
        for kind in BODY_KINDS[1:]:
            self._validators[kind] = jsonschema.Draft202012Validator(
                {"$defs": defs, "$ref": f"#/$defs/{kind}"}
            )
        self._init_stats()

    def _init_stats(self):
        self._counts = {kind: {"accepted": 0, "rejected": 0} for kind in BODY_KINDS}
        self._rejected_fields = defaultdict(int)

    def validate(self, body, kind="record"):
        """Validate a wire-form body of the given kind.

        Returns:
            tuple: (is_valid: bool, errors: list[str]) where each error
            names the offending field, e.g. ``"statusCode: '404' is not ..."``.
        """
        errors = list(self._validators[kind].iter_errors(body))
        if not errors:
            self._counts[kind]["accepted"] += 1
            return True, []

        self._counts[kind]["rejected"] += 1
        messages = []
        for error in errors:
            field = ".".join(str(p) for p in error.absolute_path) or error.validator
            self._rejected_fields[field] += 1
            messages.append(f"{field}: {error.message}")
        return False, messages

    def validate_completion(self, body):
        return self.validate(body, kind="completion")

    def validate_failure(self, body):
        return self.validate(body, kind="failure")

    def get_stats(self):
        """Accepted/rejected counts per body kind plus rejections per field."""
        stats = {kind: dict(counts) for kind, counts in self._counts.items()}
        stats["rejected_fields"] = dict(self._rejected_fields)
        return stats

    def reset_stats(self):
        self._init_stats()
