"""Translate dashboard query requests into Jira searches.

A dashboard query carries a time range and a list of targets. Each target
names either one of the fixed report kinds (``jsd:...``) or a raw JQL clause
taken from a saved filter. The translator turns every target into a
``ReportDescriptor`` holding the resolved kind, its options, and the JQL to
fetch its issues with.

Raw clauses are appended to the JQL unescaped. Targets are expected to come
from the dashboard's own panel configuration, not from arbitrary users.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from services.errors import InvalidRangeError

logger = logging.getLogger(__name__)

REPORT_PREFIX = "jsd"

TICKETS_UPDATED = "tickets:updated"
TICKETS_CREATED = "tickets:created"
ORGANIZATIONS_ALL = "organizations:all"
ORGANIZATIONS_FULL = "organizations:all:full"
ORGANIZATIONS_ONE = "organizations:one"
AGENTS_ALL = "agents:all"
AGENTS_ONE = "agents:one"
RAW_FILTER = "filter"

# (label, kind) in the order the metric picker shows them
REPORT_KINDS = [
    ("ALL Tickets Updated", TICKETS_UPDATED),
    ("ALL Tickets Created", TICKETS_CREATED),
    ("All Organizations", ORGANIZATIONS_ALL),
    ("All Organizations (per agent)", ORGANIZATIONS_FULL),
    ("All Agents", AGENTS_ALL),
    ("One Organization", ORGANIZATIONS_ONE),
    ("One Agent", AGENTS_ONE),
]
KNOWN_KINDS = {kind for _, kind in REPORT_KINDS}

FIELD_CREATED = "created"
FIELD_UPDATED = "updated"

OUTPUT_TIMESERIES = "timeseries"
OUTPUT_TABLE = "table"

BREAKDOWN_BOTH = "both"
BREAKDOWN_ISSUES = "issueCountOnly"
BREAKDOWN_LOGWORK = "logworkOnly"
BREAKDOWN_MODES = {BREAKDOWN_BOTH, BREAKDOWN_ISSUES, BREAKDOWN_LOGWORK}

JQL_DATETIME_FORMAT = "%Y-%m-%d %H:%M"


def identifier_for(kind: str) -> str:
    """Return the target identifier of a fixed report kind."""
    return f"{REPORT_PREFIX}:{kind}"


@dataclass(frozen=True)
class ReportDescriptor:
    """One requested output, resolved from a dashboard target."""

    target: str
    kind: str
    output: str = OUTPUT_TABLE
    time_range_field: str = FIELD_CREATED
    filter_organization: Optional[str] = None
    filter_agent: Optional[str] = None
    breakdown_mode: str = BREAKDOWN_BOTH
    jql: str = ""


@dataclass(frozen=True)
class NormalizedRequest:
    range_from: datetime
    range_to: datetime
    descriptors: list = field(default_factory=list)


def parse_range_value(value) -> datetime:
    """Parse one range boundary.

    Accepts ISO-8601 strings (``Z`` suffix or explicit offset) and epoch
    milliseconds. Naive values are taken as UTC.
    """
    if value is None or value == "":
        raise InvalidRangeError("Missing range boundary")

    if isinstance(value, bool):
        raise InvalidRangeError(f"Invalid range boundary: {value!r}")

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise InvalidRangeError(f"Invalid range boundary: {value!r}")

    if not isinstance(value, str):
        raise InvalidRangeError(f"Invalid range boundary: {value!r}")

    text = value.strip()
    if text.isdigit():
        return parse_range_value(int(text))

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidRangeError(f"Invalid range boundary: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_jql_datetime(value: datetime) -> str:
    """Format a datetime the way JQL date comparisons expect it."""
    return value.astimezone(timezone.utc).strftime(JQL_DATETIME_FORMAT)


def resolve_kind(target: str) -> str:
    """Map a target identifier to a report kind."""
    if not target or not target.startswith(REPORT_PREFIX + ":"):
        return RAW_FILTER

    kind = target[len(REPORT_PREFIX) + 1:]
    if kind not in KNOWN_KINDS:
        logger.warning(f"Unknown report kind {target!r}, using {ORGANIZATIONS_ALL}")
        return ORGANIZATIONS_ALL
    return kind


def _quote(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


def _text_option(value) -> Optional[str]:
    # Panel data may carry ids as numbers
    if value is None or value == "":
        return None
    return str(value)


def build_descriptor(target: dict, range_from: datetime, range_to: datetime) -> ReportDescriptor:
    """Resolve one dashboard target into a descriptor with its JQL."""
    identifier = target.get("target") or ""
    data = target.get("data") or {}
    if not isinstance(data, dict):
        data = {}

    kind = resolve_kind(identifier)

    time_range_field = data.get("timerange_type")
    if time_range_field not in (FIELD_CREATED, FIELD_UPDATED):
        time_range_field = FIELD_CREATED

    output = OUTPUT_TIMESERIES if target.get("type") == OUTPUT_TIMESERIES else OUTPUT_TABLE

    breakdown_mode = data.get("breakdown") or BREAKDOWN_BOTH
    if not isinstance(breakdown_mode, str) or breakdown_mode not in BREAKDOWN_MODES:
        logger.warning(f"Unknown breakdown mode {breakdown_mode!r}, using {BREAKDOWN_BOTH}")
        breakdown_mode = BREAKDOWN_BOTH

    filter_organization = _text_option(data.get("organization"))
    filter_agent = _text_option(data.get("agent"))

    jql = [
        f'{time_range_field} >= "{format_jql_datetime(range_from)}"',
        f'{time_range_field} <= "{format_jql_datetime(range_to)}"',
    ]

    if kind == RAW_FILTER:
        if identifier:
            jql.append(identifier)
    elif kind == ORGANIZATIONS_ONE and filter_organization:
        jql.append(f"Organizations = {_quote(filter_organization)}")
    elif kind == AGENTS_ONE and filter_agent:
        agent = _quote(filter_agent)
        jql.append(f"(assignee = {agent} OR worklogAuthor = {agent})")

    return ReportDescriptor(
        target=identifier,
        kind=kind,
        output=output,
        time_range_field=time_range_field,
        filter_organization=filter_organization,
        filter_agent=filter_agent,
        breakdown_mode=breakdown_mode,
        jql=" AND ".join(jql),
    )


def translate(range_from, range_to, targets: Optional[list]) -> NormalizedRequest:
    """Build the normalized request for a dashboard query.

    Raises:
        InvalidRangeError: if a boundary is missing or malformed, or the
            range ends before it starts.
    """
    start = parse_range_value(range_from)
    end = parse_range_value(range_to)
    if start > end:
        raise InvalidRangeError("Range start is after range end")

    descriptors = []
    for target in targets or []:
        if isinstance(target, str):
            target = {"target": target}
        elif not isinstance(target, dict):
            target = {}
        descriptor = build_descriptor(target, start, end)
        logger.debug(f"Target {descriptor.target!r} -> jql: {descriptor.jql}")
        descriptors.append(descriptor)

    return NormalizedRequest(range_from=start, range_to=end, descriptors=descriptors)
