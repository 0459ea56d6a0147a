"""Report aggregation over fetched issue records.

Every report is a pure function of the issue list and its descriptor. Nothing
here talks to Jira or keeps state between calls, so the same input always
yields the same output.

Logged time is reported in person-days: seconds divided by one eight hour
working day.
"""

import calendar
from dataclasses import dataclass, field
from typing import Optional, Union

from services.records import UNKNOWN
from services.translator import (
    AGENTS_ALL,
    AGENTS_ONE,
    BREAKDOWN_ISSUES,
    BREAKDOWN_LOGWORK,
    FIELD_CREATED,
    ORGANIZATIONS_FULL,
    ORGANIZATIONS_ONE,
    OUTPUT_TIMESERIES,
    ReportDescriptor,
)

WORKDAY_HOURS = 8
WORKDAY_SECONDS = 3600 * WORKDAY_HOURS

COLUMN_STRING = "string"
COLUMN_NUMBER = "number"

LABEL_ORGANIZATION = "Organization"
LABEL_AGENT = "Agent"
LABEL_ISSUES = "Issues"
LABEL_PERSON_DAYS = "Person-days"
LABEL_TOTAL = "Total"


def person_days(seconds: int) -> float:
    """Convert logged seconds to person-days."""
    return seconds / WORKDAY_SECONDS


@dataclass
class Tally:
    """Issue count and logged seconds for one organization or agent."""

    issues: int = 0
    seconds: int = 0

    @property
    def person_days(self) -> float:
        return person_days(self.seconds)


@dataclass
class OutputSeries:
    series_name: str
    datapoints: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "target": self.series_name,
            "datapoints": [list(point) for point in self.datapoints]
        }


@dataclass
class OutputTable:
    columns: list = field(default_factory=list)
    rows: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "columns": [{"text": text, "type": kind} for text, kind in self.columns],
            "type": "table",
            "rows": [list(row) for row in self.rows]
        }


def merge_tallies(issue_counts: dict, seconds_logged: dict) -> dict:
    """Union two independently keyed accumulators into one.

    Keys present in only one side get zero for the other, so someone who
    only logged time still shows up with an issue count of 0 and vice
    versa. Order is the issue-count keys first, then keys only seen in
    the logged time.
    """
    merged = {}
    for key, count in issue_counts.items():
        merged[key] = Tally(issues=count, seconds=seconds_logged.get(key, 0))
    for key, seconds in seconds_logged.items():
        if key not in merged:
            merged[key] = Tally(issues=0, seconds=seconds)
    return merged


def day_start_millis(moment) -> int:
    """Epoch milliseconds of the UTC midnight starting the given day."""
    return calendar.timegm(moment.date().timetuple()) * 1000


def time_series(issues: list, time_range_field: str = FIELD_CREATED,
                series_name: str = "") -> OutputSeries:
    """Count issues per UTC calendar day of the chosen timestamp.

    Issues without that timestamp are left out.
    """
    counts = {}
    for issue in issues:
        moment = issue.timestamp(time_range_field)
        if moment is None:
            continue
        day = day_start_millis(moment)
        counts[day] = counts.get(day, 0) + 1

    datapoints = [(count, day) for day, count in counts.items()]
    datapoints.sort(key=lambda point: point[1])

    return OutputSeries(series_name=series_name, datapoints=datapoints)


def _tally_table(label: str, tallies: dict) -> OutputTable:
    return OutputTable(
        columns=[
            (label, COLUMN_STRING),
            (LABEL_ISSUES, COLUMN_NUMBER),
            (LABEL_PERSON_DAYS, COLUMN_NUMBER)
        ],
        rows=[[name, tally.issues, tally.person_days] for name, tally in tallies.items()]
    )


def organization_tallies(issues: list) -> dict:
    """Issue count and logged seconds per organization, in first-seen order.

    Worklog time is booked to the issue's organization regardless of who
    logged it.
    """
    tallies = {}
    for issue in issues:
        tally = tallies.setdefault(issue.organization, Tally())
        tally.issues += 1
        tally.seconds += issue.seconds_logged
    return tallies


def organizations_all(issues: list) -> OutputTable:
    return _tally_table(LABEL_ORGANIZATION, organization_tallies(issues))


def agent_tallies(issues: list) -> dict:
    """Issue ownership per assignee merged with logged time per worklog author.

    Keyed by Identity.
    """
    assigned = {}
    logged = {}
    for issue in issues:
        assigned[issue.assignee] = assigned.get(issue.assignee, 0) + 1
        for worklog in issue.worklogs:
            logged[worklog.author] = logged.get(worklog.author, 0) + worklog.time_spent_seconds
    return merge_tallies(assigned, logged)


def agents_all(issues: list) -> OutputTable:
    return _tally_table(LABEL_AGENT, _by_unique_label(agent_tallies(issues)))


def _by_unique_label(tallies: dict) -> dict:
    # Two accounts sharing a display name keep separate rows.
    labelled = {}
    for identity, tally in tallies.items():
        label = identity.display_name
        if label in labelled:
            label = f"{identity.display_name} ({identity.key})"
        labelled[label] = tally
    return labelled


def agent_one(issues: list, agent: Optional[str]) -> OutputTable:
    """Per-organization contribution of a single agent.

    Counts issues assigned to the agent and time the agent logged. Issues
    the agent neither owns nor logged time on add nothing, so organizations
    the agent never touched get no row.
    """
    if not agent:
        agent = UNKNOWN.key

    tallies = {}
    for issue in issues:
        count = 1 if issue.assignee.matches(agent) else 0
        seconds = sum(
            w.time_spent_seconds for w in issue.worklogs if w.author.matches(agent)
        )
        if count == 0 and seconds == 0:
            continue

        tally = tallies.setdefault(issue.organization, Tally())
        tally.issues += count
        tally.seconds += seconds

    return _tally_table(LABEL_ORGANIZATION, tallies)


def _unique_labels(registry: dict, agent_keys: list) -> dict:
    """Column label per agent key; a repeated display name gets its key appended."""
    labels = {}
    seen = set()
    for key in agent_keys:
        label = registry[key]
        if label in seen:
            label = f"{registry[key]} ({key})"
        seen.add(label)
        labels[key] = label
    return labels


def totals_row(rows: list) -> list:
    """Sum every numeric column of the data rows under a total label."""
    if not rows:
        return []
    width = len(rows[0])
    return [LABEL_TOTAL] + [sum(row[i] for row in rows) for i in range(1, width)]


def organizations_full(issues: list, breakdown_mode: str) -> OutputTable:
    """Organization table with one column group per agent.

    The first pass collects organization totals, per-organization agent
    tallies and every agent seen anywhere. The second pass renders a dense
    table over organizations x agents, with agents ordered by identity key
    and missing cells as zero. A total row closes a non-empty table.
    """
    org_totals = {}
    org_agents = {}
    registry = {}

    for issue in issues:
        org = issue.organization
        total = org_totals.setdefault(org, Tally())
        agents = org_agents.setdefault(org, {})

        total.issues += 1
        registry.setdefault(issue.assignee.key, issue.assignee.display_name)
        agents.setdefault(issue.assignee.key, Tally()).issues += 1

        for worklog in issue.worklogs:
            total.seconds += worklog.time_spent_seconds
            registry.setdefault(worklog.author.key, worklog.author.display_name)
            agents.setdefault(worklog.author.key, Tally()).seconds += worklog.time_spent_seconds

    agent_keys = sorted(registry)
    for org, agents in org_agents.items():
        org_agents[org] = {key: agents.get(key, Tally()) for key in agent_keys}
    labels = _unique_labels(registry, agent_keys)

    columns = [(LABEL_ORGANIZATION, COLUMN_STRING)]
    if breakdown_mode == BREAKDOWN_ISSUES:
        columns.append((LABEL_ISSUES, COLUMN_NUMBER))
        columns.extend((labels[key], COLUMN_NUMBER) for key in agent_keys)
    elif breakdown_mode == BREAKDOWN_LOGWORK:
        columns.append((LABEL_PERSON_DAYS, COLUMN_NUMBER))
        columns.extend((labels[key], COLUMN_NUMBER) for key in agent_keys)
    else:
        columns.append((LABEL_ISSUES, COLUMN_NUMBER))
        columns.append((LABEL_PERSON_DAYS, COLUMN_NUMBER))
        for key in agent_keys:
            columns.append((f"{labels[key]} issues", COLUMN_NUMBER))
            columns.append((f"{labels[key]} person-days", COLUMN_NUMBER))

    rows = []
    for org, total in org_totals.items():
        agents = org_agents[org]
        if breakdown_mode == BREAKDOWN_ISSUES:
            row = [org, total.issues] + [agents[key].issues for key in agent_keys]
        elif breakdown_mode == BREAKDOWN_LOGWORK:
            row = [org, total.person_days] + [agents[key].person_days for key in agent_keys]
        else:
            row = [org, total.issues, total.person_days]
            for key in agent_keys:
                row.extend([agents[key].issues, agents[key].person_days])
        rows.append(row)

    if rows:
        rows.append(totals_row(rows))

    return OutputTable(columns=columns, rows=rows)


def aggregate(issues: list, descriptor: ReportDescriptor) -> Union[OutputSeries, OutputTable]:
    """Reduce the issues fetched for one target into its report.

    Time series targets count issues per day whatever their kind. Table
    targets dispatch on the kind; tickets and raw filter targets render
    the organization breakdown.
    """
    if descriptor.output == OUTPUT_TIMESERIES:
        return time_series(issues, descriptor.time_range_field, descriptor.target)

    if descriptor.kind == ORGANIZATIONS_FULL:
        return organizations_full(issues, descriptor.breakdown_mode)
    if descriptor.kind in (ORGANIZATIONS_ONE, AGENTS_ALL):
        return agents_all(issues)
    if descriptor.kind == AGENTS_ONE:
        return agent_one(issues, descriptor.filter_agent)
    return organizations_all(issues)
