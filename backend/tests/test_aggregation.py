"""Tests for the report aggregation engine."""

import random

import pytest

from conftest import make_record, make_worklog
from services.records import Identity, IssueRecord
from services.aggregation import (
    WORKDAY_SECONDS,
    OutputSeries,
    OutputTable,
    Tally,
    agent_one,
    agent_tallies,
    agents_all,
    aggregate,
    merge_tallies,
    organizations_all,
    organizations_full,
    time_series,
    totals_row,
)
from services.translator import (
    BREAKDOWN_BOTH,
    BREAKDOWN_ISSUES,
    BREAKDOWN_LOGWORK,
    ReportDescriptor,
)

JAN_1 = 1704067200000
JAN_2 = 1704153600000
JAN_3 = 1704240000000


class TestMergeTallies:
    """Test the key-set union of issue counts and logged time."""

    def test_union_of_keys(self):
        """Keys from either side should appear, zero-filled on the other."""
        merged = merge_tallies({"a": 1}, {"a": 2, "b": 1})
        assert merged == {"a": Tally(1, 2), "b": Tally(0, 1)}

    def test_order_issue_keys_first(self):
        """Issue-count keys keep their order, logged-only keys follow."""
        merged = merge_tallies({"x": 1, "y": 2}, {"z": 5, "x": 3})
        assert list(merged) == ["x", "y", "z"]

    def test_empty(self):
        assert merge_tallies({}, {}) == {}


class TestTimeSeries:
    """Test issues-per-day series."""

    def test_counts_per_utc_day(self, sample_records):
        """Should group by UTC calendar day of the created timestamp."""
        series = time_series(sample_records, "created", "jsd:tickets:created")
        assert series.datapoints == [(1, JAN_1), (1, JAN_2), (2, JAN_3)]
        assert series.series_name == "jsd:tickets:created"

    def test_sorted_regardless_of_input_order(self, sample_records):
        series = time_series(list(reversed(sample_records)), "created")
        timestamps = [ts for _, ts in series.datapoints]
        assert timestamps == sorted(timestamps)

    def test_counts_sum_to_input_length(self, sample_records):
        series = time_series(sample_records, "created")
        assert sum(count for count, _ in series.datapoints) == len(sample_records)

    def test_uses_updated_field(self):
        """Should bucket by the updated timestamp when asked."""
        issues = [
            make_record("SD-1", created="2024-01-01T10:00:00.000+0000",
                        updated="2024-01-03T10:00:00.000+0000"),
        ]
        series = time_series(issues, "updated")
        assert series.datapoints == [(1, JAN_3)]

    def test_local_offset_normalized_to_utc(self):
        """A timestamp just after local midnight belongs to the previous UTC day."""
        issues = [make_record("SD-1", created="2024-01-03T01:00:00.000+0800")]
        series = time_series(issues, "created")
        assert series.datapoints == [(1, JAN_2)]

    def test_empty_input(self):
        assert time_series([], "created").datapoints == []

    def test_to_dict(self, sample_records):
        result = time_series(sample_records, "created", "jsd:tickets:created").to_dict()
        assert result == {
            "target": "jsd:tickets:created",
            "datapoints": [[1, JAN_1], [1, JAN_2], [2, JAN_3]]
        }


class TestOrganizationsAll:
    """Test the per-organization breakdown."""

    def test_rows_in_first_seen_order(self, sample_records):
        table = organizations_all(sample_records)
        assert table.rows == [
            ["Acme", 2, 1.625],
            ["Globex", 1, 0.0],
            ["Unknown", 1, 0.25],
        ]

    def test_worklog_time_booked_to_issue_organization(self):
        """Worklog time counts for the issue's organization, whoever logged it."""
        issues = [
            make_record("SD-1", org="A", assignee="x",
                        worklogs=[make_worklog("x", 28800)]),
            make_record("SD-2", org="A", assignee="y"),
        ]
        assert organizations_all(issues).rows == [["A", 2, 1.0]]

    def test_no_totals_row(self, sample_records):
        table = organizations_all(sample_records)
        assert all(row[0] != "Total" for row in table.rows)

    def test_columns(self):
        table = organizations_all([])
        assert table.to_dict() == {
            "columns": [
                {"text": "Organization", "type": "string"},
                {"text": "Issues", "type": "number"},
                {"text": "Person-days", "type": "number"}
            ],
            "type": "table",
            "rows": []
        }


class TestAgentsAll:
    """Test the per-agent breakdown."""

    def test_merges_assignees_and_worklog_authors(self, sample_records):
        table = agents_all(sample_records)
        assert table.rows == [
            ["Alice", 2, 1.125],
            ["Dave", 1, 0.0],
            ["Unassigned", 1, 0.0],
            ["Carol", 0, 0.75],
        ]

    def test_rows_match_separate_accumulators(self, sample_records):
        """Every identity's row equals its assignee count and its logged time."""
        assigned = {}
        logged = {}
        for issue in sample_records:
            assigned[issue.assignee] = assigned.get(issue.assignee, 0) + 1
            for worklog in issue.worklogs:
                logged[worklog.author] = logged.get(worklog.author, 0) + worklog.time_spent_seconds

        tallies = agent_tallies(sample_records)
        assert set(tallies) == set(assigned) | set(logged)
        for identity, tally in tallies.items():
            assert tally.issues == assigned.get(identity, 0)
            assert tally.person_days == logged.get(identity, 0) / WORKDAY_SECONDS

    def test_empty_worklogs_contribute_nothing(self):
        issues = [make_record("SD-1", org="A", assignee="x")]
        assert agents_all(issues).rows == [["X", 1, 0.0]]

    def test_empty_input(self):
        assert agents_all([]).rows == []


class TestAgentOne:
    """Test the single-agent breakdown."""

    def test_counts_only_the_agent(self, sample_records):
        table = agent_one(sample_records, "alice")
        assert table.rows == [["Acme", 2, 1.125]]

    def test_logged_time_without_assignment(self, sample_records):
        """An agent who only logs time gets rows with zero issues."""
        table = agent_one(sample_records, "carol")
        assert table.rows == [["Acme", 0, 0.5], ["Unknown", 0, 0.25]]

    def test_matches_display_name(self, sample_records):
        assert agent_one(sample_records, "Carol").rows == agent_one(sample_records, "carol").rows

    def test_unknown_agent_yields_no_rows(self, sample_records):
        assert agent_one(sample_records, "x").rows == []

    def test_missing_agent_defaults_to_unknown(self, sample_records):
        """No agent given should not fail and matches nobody here."""
        assert agent_one(sample_records, None).rows == []


class TestTotalsRow:
    """Test totals row computation."""

    def test_sums_numeric_columns(self):
        assert totals_row([["a", 1, 0.5], ["b", 2, 1.0]]) == ["Total", 3, 1.5]

    def test_empty(self):
        assert totals_row([]) == []


class TestOrganizationsFull:
    """Test the organization x agent cross-tab."""

    def test_both_columns(self, sample_records):
        table = organizations_full(sample_records, BREAKDOWN_BOTH)
        assert [text for text, _ in table.columns] == [
            "Organization", "Issues", "Person-days",
            "Unassigned issues", "Unassigned person-days",
            "Alice issues", "Alice person-days",
            "Carol issues", "Carol person-days",
            "Dave issues", "Dave person-days",
        ]

    def test_both_rows(self, sample_records):
        table = organizations_full(sample_records, BREAKDOWN_BOTH)
        assert table.rows == [
            ["Acme", 2, 1.625, 0, 0.0, 2, 1.125, 0, 0.5, 0, 0.0],
            ["Globex", 1, 0.0, 0, 0.0, 0, 0.0, 0, 0.0, 1, 0.0],
            ["Unknown", 1, 0.25, 1, 0.0, 0, 0.0, 0, 0.25, 0, 0.0],
            ["Total", 4, 1.875, 1, 0.0, 2, 1.125, 0, 0.75, 1, 0.0],
        ]

    def test_issue_count_only(self, sample_records):
        table = organizations_full(sample_records, BREAKDOWN_ISSUES)
        assert [text for text, _ in table.columns] == [
            "Organization", "Issues", "Unassigned", "Alice", "Carol", "Dave"
        ]
        assert table.rows == [
            ["Acme", 2, 0, 2, 0, 0],
            ["Globex", 1, 0, 0, 0, 1],
            ["Unknown", 1, 1, 0, 0, 0],
            ["Total", 4, 1, 2, 0, 1],
        ]

    def test_logwork_only(self, sample_records):
        table = organizations_full(sample_records, BREAKDOWN_LOGWORK)
        assert [text for text, _ in table.columns] == [
            "Organization", "Person-days", "Unassigned", "Alice", "Carol", "Dave"
        ]
        assert table.rows[0] == ["Acme", 1.625, 0.0, 1.125, 0.5, 0.0]
        assert table.rows[-1] == ["Total", 1.875, 0.0, 1.125, 0.75, 0.0]

    @pytest.mark.parametrize("mode", [BREAKDOWN_BOTH, BREAKDOWN_ISSUES, BREAKDOWN_LOGWORK])
    def test_totals_equal_column_sums(self, sample_records, mode):
        table = organizations_full(sample_records, mode)
        data, total = table.rows[:-1], table.rows[-1]
        assert total[0] == "Total"
        for i in range(1, len(table.columns)):
            assert total[i] == sum(row[i] for row in data)

    @pytest.mark.parametrize("mode", [BREAKDOWN_BOTH, BREAKDOWN_ISSUES, BREAKDOWN_LOGWORK])
    def test_every_row_has_every_agent(self, sample_records, mode):
        table = organizations_full(sample_records, mode)
        for row in table.rows:
            assert len(row) == len(table.columns)

    def test_columns_stable_under_shuffled_input(self, sample_records):
        shuffled = list(sample_records)
        random.Random(7).shuffle(shuffled)
        first = organizations_full(sample_records, BREAKDOWN_BOTH)
        second = organizations_full(shuffled, BREAKDOWN_BOTH)
        assert first.columns == second.columns
        assert sorted(first.rows[:-1]) == sorted(second.rows[:-1])
        assert first.rows[-1] == second.rows[-1]

    @pytest.mark.parametrize("mode", [BREAKDOWN_BOTH, BREAKDOWN_ISSUES, BREAKDOWN_LOGWORK])
    def test_shared_display_name_gets_distinct_columns(self, mode):
        """Two accounts with the same display name must not share a column label."""
        issues = [
            IssueRecord(key="SD-1", created_at=None, updated_at=None, organization="A",
                        assignee=Identity("a1", "Sam")),
            IssueRecord(key="SD-2", created_at=None, updated_at=None, organization="A",
                        assignee=Identity("a2", "Sam")),
        ]
        table = organizations_full(issues, mode)
        labels = [text for text, _ in table.columns]
        assert len(labels) == len(set(labels))
        if mode == BREAKDOWN_ISSUES:
            assert labels == ["Organization", "Issues", "Sam", "Sam (a2)"]
            assert table.rows == [["A", 2, 1, 1], ["Total", 2, 1, 1]]

    def test_empty_input_has_no_totals_row(self):
        table = organizations_full([], BREAKDOWN_BOTH)
        assert table.rows == []
        assert [text for text, _ in table.columns] == ["Organization", "Issues", "Person-days"]


class TestAggregate:
    """Test dispatch from descriptor to report."""

    def test_timeseries_output_for_any_kind(self, sample_records):
        descriptor = ReportDescriptor(target="jsd:agents:all", kind="agents:all",
                                      output="timeseries")
        assert isinstance(aggregate(sample_records, descriptor), OutputSeries)

    @pytest.mark.parametrize("kind,expected", [
        ("organizations:all", organizations_all),
        ("organizations:one", agents_all),
        ("agents:all", agents_all),
        ("tickets:created", organizations_all),
        ("filter", organizations_all),
    ])
    def test_table_dispatch(self, sample_records, kind, expected):
        descriptor = ReportDescriptor(target="t", kind=kind, output="table")
        result = aggregate(sample_records, descriptor)
        assert isinstance(result, OutputTable)
        assert result == expected(sample_records)

    def test_agent_one_uses_filter_agent(self, sample_records):
        descriptor = ReportDescriptor(target="jsd:agents:one", kind="agents:one",
                                      filter_agent="alice")
        assert aggregate(sample_records, descriptor).rows == [["Acme", 2, 1.125]]

    def test_full_uses_breakdown_mode(self, sample_records):
        descriptor = ReportDescriptor(target="jsd:organizations:all:full",
                                      kind="organizations:all:full",
                                      breakdown_mode=BREAKDOWN_ISSUES)
        assert aggregate(sample_records, descriptor) == organizations_full(
            sample_records, BREAKDOWN_ISSUES)

    def test_idempotent(self, sample_records):
        descriptor = ReportDescriptor(target="jsd:organizations:all:full",
                                      kind="organizations:all:full")
        assert aggregate(sample_records, descriptor) == aggregate(sample_records, descriptor)
