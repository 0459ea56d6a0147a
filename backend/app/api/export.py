"""Spreadsheet download endpoint."""

import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from services.errors import InvalidRangeError, UpstreamFetchError
from services.export import XLSX_MIMETYPE, export_range

logger = logging.getLogger(__name__)

bp = Blueprint("export", __name__)


@bp.route("/download", methods=["GET"])
def download():
    """Download the issues of a time range as an .xlsx workbook.

    Query params:
        - from: Range start, ISO-8601 or epoch milliseconds
        - to: Range end, ISO-8601 or epoch milliseconds
        - target: Optional JQL clause narrowing the issues
    """
    range_from = request.args.get("from")
    range_to = request.args.get("to")
    target = request.args.get("target")

    try:
        binary = export_range(
            current_app.extensions["report_service"], range_from, range_to, target
        )
    except InvalidRangeError as e:
        return jsonify({"error": str(e)}), 400
    except UpstreamFetchError as e:
        logger.warning(f"Export failed: {e}")
        return jsonify({"error": str(e)}), 502

    return send_file(
        binary,
        as_attachment=True,
        download_name="jira-report.xlsx",
        mimetype=XLSX_MIMETYPE,
    )
