"""Issue records built from raw Jira search results."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from services.errors import MalformedRecordError

logger = logging.getLogger(__name__)

UNKNOWN_ORGANIZATION = "Unknown"
DEFAULT_ORGANIZATION_FIELD = "customfield_10002"


@dataclass(frozen=True)
class Identity:
    """A Jira user: stable key plus the name shown in reports."""

    key: str
    display_name: str

    def matches(self, value: Optional[str]) -> bool:
        """Check a filter value against either the key or the display name."""
        if value is None:
            return False
        return value == self.key or value == self.display_name


UNASSIGNED = Identity("Unassigned", "Unassigned")
UNKNOWN = Identity("Unknown", "Unknown")


@dataclass(frozen=True)
class WorklogEntry:
    author: Identity
    time_spent_seconds: int


@dataclass(frozen=True)
class IssueRecord:
    key: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    organization: str = UNKNOWN_ORGANIZATION
    assignee: Identity = UNASSIGNED
    worklogs: tuple = field(default_factory=tuple)

    @classmethod
    def from_jira(cls, raw: dict,
                  organization_field: str = DEFAULT_ORGANIZATION_FIELD) -> "IssueRecord":
        """Build a record from one entry of a Jira search response."""
        fields = raw.get("fields") or {}
        key = raw.get("key", "")

        try:
            worklogs = parse_worklogs(fields)
        except MalformedRecordError as e:
            logger.warning(f"Issue {key}: {e}, counting no logged time")
            worklogs = ()

        return cls(
            key=key,
            created_at=parse_date(fields.get("created")),
            updated_at=parse_date(fields.get("updated")),
            organization=parse_organization(fields.get(organization_field)),
            assignee=parse_identity(fields.get("assignee"), UNASSIGNED),
            worklogs=worklogs,
        )

    def timestamp(self, field_name: str) -> Optional[datetime]:
        """Return the created or updated timestamp."""
        if field_name == "updated":
            return self.updated_at
        return self.created_at

    @property
    def seconds_logged(self) -> int:
        return sum(w.time_spent_seconds for w in self.worklogs)


def parse_identity(user: Optional[dict], default: Identity) -> Identity:
    """Turn a Jira user object into an Identity.

    Cloud instances identify users by accountId, Server/DC by name or key.
    """
    if not user:
        return default

    display_name = user.get("displayName")
    key = user.get("accountId") or user.get("name") or user.get("key") or display_name
    if not key:
        return default

    return Identity(key=key, display_name=display_name or key)


def parse_organization(value) -> str:
    """Extract the first organization name from the organizations field.

    Jira Service Desk stores organizations as a list of objects with a
    name; a plain string value is accepted as well.
    """
    if isinstance(value, str):
        return value or UNKNOWN_ORGANIZATION

    if isinstance(value, list) and value:
        first = value[0]
        if isinstance(first, dict) and first.get("name"):
            return first["name"]
        if isinstance(first, str) and first:
            return first

    return UNKNOWN_ORGANIZATION


def parse_worklogs(fields: dict) -> tuple:
    """Parse the embedded worklog list of an issue.

    Raises:
        MalformedRecordError: if the issue carries no worklog container.
    """
    container = fields.get("worklog")
    if not isinstance(container, dict) or not isinstance(container.get("worklogs"), list):
        raise MalformedRecordError("missing worklog container")

    entries = []
    for item in container["worklogs"]:
        if not isinstance(item, dict):
            continue
        entries.append(WorklogEntry(
            author=parse_identity(item.get("author"), UNKNOWN),
            time_spent_seconds=_parse_seconds(item.get("timeSpentSeconds")),
        ))

    return tuple(entries)


def _parse_seconds(value) -> int:
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return 0
    return max(seconds, 0)


def parse_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse a Jira date string into an aware UTC datetime."""
    if not date_str:
        return None

    # Jira formats: "2024-10-31T12:11:56.289-0400" or "2024-10-31T12:11:56.289+0000"
    formats = [
        "%Y-%m-%dT%H:%M:%S.%f%z",
        "%Y-%m-%dT%H:%M:%S%z",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%d"
    ]

    for fmt in formats:
        try:
            parsed = datetime.strptime(date_str, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    logger.debug(f"Unparseable date value: {date_str!r}")
    return None
