import atexit
import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, jsonify, request

from pixeldiag.config import Config
from pixeldiag.formatter import export_session
from pixeldiag.models import IssueType, issue_to_dict, record_from_dict, record_to_dict
from pixeldiag.store import DuplicateRequestError, RequestStore
from pixeldiag.summary import summary_to_dict
from pixeldiag.validator import RecordValidator

logger = logging.getLogger(__name__)


def build_store(config: Config, auto_analyze: bool | None = None) -> RequestStore:
    store_config = config["store"]
    if auto_analyze is None:
        auto_analyze = store_config.get("auto_analyze", True)
    return RequestStore(
        thresholds=config.thresholds,
        placement_params=config.placement_params,
        max_records=store_config.get("max_records"),
        auto_analyze=auto_analyze,
    )


def create_app(config=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config(os.environ.get("CONFIG_PATH", "config.yaml"))

    validator = RecordValidator(config["schema"].get("path"))
    store = build_store(config)

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "validator": validator,
        "store": store,
    }

    scheduler_config = config["scheduler"]
    if scheduler_config.get("enabled", True):
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            store.sweep_timeouts,
            "interval",
            seconds=scheduler_config.get("timeout_sweep_seconds", 5),
        )
        scheduler.start()
        atexit.register(scheduler.shutdown)
        app.config["components"]["scheduler"] = scheduler

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "tracked_requests": len(store),
            "validation": validator.get_stats(),
        })

    @app.route("/api/requests", methods=["POST"])
    def start_request():
        payload = request.get_json(force=True, silent=True)
        if payload is None:
            return jsonify({"status": "invalid", "errors": ["Body must be JSON"]}), 400

        is_valid, errors = validator.validate(payload)
        if not is_valid:
            return jsonify({"status": "invalid", "errors": errors}), 400

        try:
            record = store.start(record_from_dict(payload))
        except DuplicateRequestError as exc:
            return jsonify({"status": "conflict", "errors": [str(exc)]}), 409

        return jsonify({"status": "accepted", "request": record_to_dict(record)}), 201

    def _lifecycle_body(request_id, validate):
        """Return (payload, error_response) for a completion/failure update."""
        if store.get(request_id) is None:
            return None, (jsonify({"status": "not_found"}), 404)

        payload = request.get_json(force=True, silent=True)
        if payload is None:
            payload = {}
        is_valid, errors = validate(payload)
        if not is_valid:
            return None, (jsonify({"status": "invalid", "errors": errors}), 400)
        return payload, None

    @app.route("/api/requests/<request_id>/complete", methods=["POST"])
    def complete_request(request_id):
        payload, error_response = _lifecycle_body(request_id, validator.validate_completion)
        if error_response:
            return error_response

        record = store.complete(request_id, payload.get("statusCode"), payload.get("duration"))
        if record is None:
            return jsonify({"status": "ignored", "reason": "already completed"}), 200
        return jsonify({"status": "completed", "request": record_to_dict(record)})

    @app.route("/api/requests/<request_id>/error", methods=["POST"])
    def fail_request(request_id):
        payload, error_response = _lifecycle_body(request_id, validator.validate_failure)
        if error_response:
            return error_response

        record = store.fail(request_id, payload.get("error") or "unknown error")
        if record is None:
            return jsonify({"status": "ignored", "reason": "already completed"}), 200
        return jsonify({"status": "failed", "request": record_to_dict(record)})

    @app.route("/api/requests", methods=["GET"])
    def list_requests():
        try:
            issue_types = [IssueType(t) for t in request.args.getlist("issue_type")]
        except ValueError as exc:
            return jsonify({"status": "invalid", "errors": [str(exc)]}), 400

        records = store.filter(
            issue_types=issue_types,
            only_issues=request.args.get("only_issues", "false").lower() == "true",
            query=request.args.get("q"),
            use_regex=request.args.get("regex", "false").lower() == "true",
        )
        return jsonify([record_to_dict(r) for r in records])

    @app.route("/api/requests/<request_id>", methods=["GET"])
    def get_request(request_id):
        record = store.get(request_id)
        if record is None:
            return jsonify({"status": "not_found"}), 404
        return jsonify(record_to_dict(record))

    @app.route("/api/requests", methods=["DELETE"])
    def clear_requests():
        store.clear()
        validator.reset_stats()
        return jsonify({"status": "cleared"})

    @app.route("/api/analyze", methods=["POST"])
    def analyze():
        appended = store.analyze()
        return jsonify({
            "status": "analyzed",
            "issues": {
                request_id: [issue_to_dict(i) for i in issues]
                for request_id, issues in appended.items()
            },
        })

    @app.route("/api/issues/summary")
    def issue_summary():
        return jsonify(summary_to_dict(store.summary()))

    @app.route("/api/export")
    def export():
        return jsonify(export_session(store.snapshot()))

    return app
