"""HTTP Basic authentication for the dashboard-facing API.

The mode is fixed at startup: anonymous access, or a single user/password
pair taken from the configuration.
"""

import hmac

from flask import Response, current_app, request

REALM = "jira-reporting"


def _check(expected: str, given: str) -> bool:
    return hmac.compare_digest((expected or "").encode(), (given or "").encode())


def is_authorized(config) -> bool:
    """Check the request's Basic credentials against the configured pair."""
    if config.auth_mode == "anonymous":
        return True

    credentials = request.authorization
    if credentials is None:
        return False

    user_ok = _check(config.http_user, credentials.username)
    pass_ok = _check(config.http_pass, credentials.password)
    return user_ok and pass_ok


def challenge() -> Response:
    return Response(
        "Unauthorized",
        status=401,
        mimetype="text/plain",
        headers={"WWW-Authenticate": f'Basic realm="{REALM}"'}
    )


def init_auth(app):
    """Install the authentication check selected by the app configuration."""
    config = app.config["REPORTING"]
    app.logger.info(f"Authentication mode: {config.auth_mode}")

    @app.before_request
    def require_auth():
        if request.method == "OPTIONS":
            return None
        if not is_authorized(current_app.config["REPORTING"]):
            return challenge()
        return None
