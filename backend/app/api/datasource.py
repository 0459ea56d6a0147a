"""Dashboard datasource endpoints.

Implements the JSON datasource protocol: a connection check, metric
discovery for the query editor, and the query endpoint itself.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, Response, current_app, jsonify, request

from services.errors import InvalidRangeError, UpstreamFetchError

logger = logging.getLogger(__name__)

bp = Blueprint("datasource", __name__)


def get_report_service():
    return current_app.extensions["report_service"]


@bp.route("/", methods=["GET"])
def connection_check():
    """Used by "Test connection" on the datasource settings page."""
    body = f"{datetime.now(timezone.utc).strftime('%a %b %d %Y %H:%M:%S %Z')}: OK"
    return Response(body, mimetype="text/plain")


@bp.route("/test-jira", methods=["GET"])
def test_jira():
    """Check the connection to Jira by fetching the configured user.

    On failure the Jira error payload is passed through as JSON.
    """
    client = current_app.extensions["jira_client"]

    try:
        return jsonify(client.myself())
    except UpstreamFetchError as e:
        logger.warning(f"Jira connectivity check failed: {e}")
        payload = e.payload if e.payload is not None else {"errorMessages": [str(e)]}
        return jsonify(payload), e.status_code or 502


@bp.route("/search", methods=["GET", "POST"])
def search():
    """List the metrics the query editor can pick from."""
    try:
        return jsonify(get_report_service().list_report_kinds())
    except UpstreamFetchError as e:
        logger.warning(f"Listing saved filters failed: {e}")
        return jsonify({"error": str(e)}), 502


@bp.route("/query", methods=["POST"])
def query():
    """Answer a query with one series or table per target.

    Expects JSON body with:
        - range: {from, to}
        - targets: [{target, type, data}]
    """
    data = request.get_json(silent=True)

    if not isinstance(data, dict):
        return jsonify({"error": "Missing request body"}), 400

    time_range = data.get("range")
    if not isinstance(time_range, dict):
        return jsonify({"error": "Missing required field: range"}), 400

    targets = data.get("targets")
    if targets is not None and not isinstance(targets, list):
        return jsonify({"error": "Field targets must be a list"}), 400

    try:
        result = get_report_service().run_query(
            time_range.get("from"), time_range.get("to"), targets
        )
        return jsonify(result)
    except InvalidRangeError as e:
        return jsonify({"error": str(e)}), 400
    except UpstreamFetchError as e:
        logger.warning(f"Query failed: {e}")
        return jsonify({"error": str(e)}), 502
