"""Shared fixtures for reporting backend tests."""

import os
import sys

import pytest
from unittest.mock import Mock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app import create_app
from app.config import Config
from services.records import IssueRecord


def make_worklog(author, seconds):
    """Raw Jira worklog entry authored by a user name."""
    return {
        "author": {"name": author, "displayName": author.title()},
        "timeSpentSeconds": seconds
    }


def make_issue(key, org=None, assignee=None, worklogs=None,
               created="2024-01-02T10:00:00.000+0000",
               updated="2024-01-03T10:00:00.000+0000"):
    """Raw Jira search result entry."""
    return {
        "key": key,
        "fields": {
            "created": created,
            "updated": updated,
            "customfield_10002": [{"id": 1, "name": org}] if org else [],
            "assignee": {"name": assignee, "displayName": assignee.title()} if assignee else None,
            "worklog": {
                "startAt": 0,
                "total": len(worklogs or []),
                "worklogs": worklogs or []
            }
        }
    }


def make_record(key, org=None, assignee=None, worklogs=None, **dates):
    return IssueRecord.from_jira(make_issue(key, org, assignee, worklogs, **dates))


@pytest.fixture
def raw_issue():
    """Sample Jira Service Desk issue with two worklogs."""
    return {
        "key": "SD-101",
        "fields": {
            "created": "2024-01-02T10:00:00.000+0800",
            "updated": "2024-01-05T01:30:00.000+0800",
            "customfield_10002": [{"id": 3, "name": "Acme Corp"}],
            "assignee": {
                "accountId": "acc-alice",
                "name": "alice",
                "displayName": "Alice Liddell"
            },
            "worklog": {
                "startAt": 0,
                "total": 2,
                "worklogs": [
                    {
                        "author": {"accountId": "acc-alice", "displayName": "Alice Liddell"},
                        "timeSpentSeconds": 7200
                    },
                    {
                        "author": {"accountId": "acc-bob", "displayName": "Bob Builder"},
                        "timeSpentSeconds": 3600
                    }
                ]
            }
        }
    }


@pytest.fixture
def sample_records():
    """Issues across two organizations and three agents.

    carol only logs time and is never an assignee; dave is assigned but
    never logs time.
    """
    return [
        make_record("SD-1", org="Acme", assignee="alice",
                    worklogs=[make_worklog("alice", 28800), make_worklog("carol", 14400)],
                    created="2024-01-03T09:00:00.000+0000"),
        make_record("SD-2", org="Globex", assignee="dave",
                    created="2024-01-01T23:30:00.000+0000"),
        make_record("SD-3", org="Acme", assignee="alice",
                    worklogs=[make_worklog("alice", 3600)],
                    created="2024-01-03T18:00:00.000+0000"),
        make_record("SD-4", assignee=None,
                    worklogs=[make_worklog("carol", 7200)],
                    created="2024-01-02T12:00:00.000+0000"),
    ]


@pytest.fixture
def test_config():
    return Config(jira_host="https://jira.example.com", jira_user="bot", jira_pass="secret")


@pytest.fixture
def mock_jira_client():
    """Jira client double with an empty instance behind it."""
    client = Mock()
    client.search.return_value = []
    client.list_favourite_filters.return_value = []
    client.myself.return_value = {"name": "bot", "displayName": "Report Bot"}
    return client


@pytest.fixture
def app(test_config, mock_jira_client):
    """Create Flask test app."""
    app = create_app(test_config, client=mock_jira_client)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
