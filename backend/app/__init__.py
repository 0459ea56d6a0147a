"""Flask application factory."""

import logging
from datetime import datetime, timezone

from flask import Flask, request
from flask_cors import CORS

from app.auth import init_auth
from app.config import Config
from services.jira_client import JiraClient
from services.report_service import ReportService

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

access_logger = logging.getLogger("app.access")


def configure_logging(level: str = "INFO"):
    """Set up root logging once for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _log_request(response):
    """Log the finished request in Apache combined format."""
    timestamp = datetime.now(timezone.utc).strftime("%d/%b/%Y:%H:%M:%S %z")
    user = request.authorization.username if request.authorization else "-"
    length = response.content_length
    access_logger.info(
        '%s - %s [%s] "%s %s %s" %s %s "%s" "%s"',
        request.remote_addr or "-",
        user or "-",
        timestamp,
        request.method,
        request.full_path.rstrip("?"),
        request.environ.get("SERVER_PROTOCOL", "HTTP/1.1"),
        response.status_code,
        length if length is not None else "-",
        request.referrer or "-",
        request.user_agent.string or "-",
    )
    return response


def create_app(config: Config = None, client=None):
    """Create and configure the Flask application.

    Args:
        config: Settings to use; read from the environment when omitted.
        client: Jira client to use; built from the settings when omitted.
    """
    if config is None:
        config = Config.from_env()

    app = Flask(__name__)
    app.config["REPORTING"] = config

    origins = [o.strip() for o in config.cors_origins.split(",") if o.strip()]
    CORS(app, resources={
        r"/*": {
            "origins": origins or "*",
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"]
        }
    })

    if client is None:
        client = JiraClient(
            config.jira_host, config.jira_user, config.jira_pass,
            organization_field=config.organization_field,
            timeout=config.timeout
        )
    app.extensions["jira_client"] = client
    app.extensions["report_service"] = ReportService(
        client, max_results=config.max_results, workers=config.workers
    )

    init_auth(app)
    app.after_request(_log_request)

    # Register blueprints
    from app.api import datasource, export
    app.register_blueprint(datasource.bp)
    app.register_blueprint(export.bp)

    if not config.jira_host:
        app.logger.warning("JIRA_HOST is not set, upstream calls will fail")

    return app
