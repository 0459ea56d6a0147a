"""Jira REST client for the reporting backend."""

import logging
from typing import Optional

import requests

from services.errors import UpstreamFetchError
from services.records import DEFAULT_ORGANIZATION_FIELD, IssueRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 10000
DEFAULT_TIMEOUT = 60


def normalize_server(host: str) -> str:
    """Turn a configured Jira host into a base URL."""
    host = (host or "").strip().rstrip("/")
    if host and "://" not in host:
        host = f"https://{host}"
    return host


class JiraClient:
    """Thin wrapper over the Jira REST API v2 endpoints the reports use."""

    def __init__(self, server: str, user: str, password: str,
                 organization_field: str = DEFAULT_ORGANIZATION_FIELD,
                 timeout: int = DEFAULT_TIMEOUT):
        self.server = normalize_server(server)
        self.user = user
        self.password = password
        self.organization_field = organization_field
        self.timeout = timeout

    def _request(self, method: str, endpoint: str, params: Optional[dict] = None,
                 json: Optional[dict] = None):
        """Make authenticated request to Jira API.

        Raises:
            UpstreamFetchError: on connection failures and non-2xx answers.
        """
        if not self.server:
            raise UpstreamFetchError("Jira host is not configured")

        try:
            response = requests.request(
                method,
                f"{self.server}{endpoint}",
                auth=(self.user, self.password),
                headers={"Accept": "application/json"},
                params=params,
                json=json,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise UpstreamFetchError(f"Connection to Jira timed out: {endpoint}")
        except requests.exceptions.RequestException as e:
            raise UpstreamFetchError(f"Failed to connect to Jira: {e}")

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {"errorMessages": [response.text]}
            raise UpstreamFetchError(
                f"Jira API error: {response.status_code}",
                status_code=response.status_code,
                payload=payload
            )

        try:
            return response.json()
        except ValueError:
            raise UpstreamFetchError(
                f"Jira returned a non-JSON body for {endpoint}",
                status_code=response.status_code
            )

    def requested_fields(self) -> list:
        return ["created", "updated", "assignee", "worklog", self.organization_field]

    def search(self, jql: str, max_results: int = DEFAULT_MAX_RESULTS,
               fields: Optional[list] = None) -> list:
        """Run one bounded JQL search and return the issues as records."""
        data = self._request(
            "POST",
            "/rest/api/2/search",
            json={
                "jql": jql,
                "startAt": 0,
                "maxResults": max_results,
                "fields": fields or self.requested_fields()
            }
        )

        issues = data.get("issues", [])
        total = data.get("total")
        if total is not None and total > len(issues):
            logger.warning(
                f"Search returned {len(issues)} of {total} issues, results are truncated"
            )

        return [IssueRecord.from_jira(issue, self.organization_field) for issue in issues]

    def list_favourite_filters(self) -> list:
        """Return the saved filters of the configured user as {name, jql} dicts."""
        filters = self._request("GET", "/rest/api/2/filter/favourite")
        return [
            {"name": f.get("name", ""), "jql": f.get("jql", "")}
            for f in filters
        ]

    def myself(self) -> dict:
        """Fetch the configured user, used as an upstream connectivity check."""
        return self._request("GET", "/rest/api/2/myself")
