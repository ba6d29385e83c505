"""Tests for weekly report generation."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from weekly_report.exceptions import (
    InvalidIssueKeyError,
    IssueNotFoundError,
    JiraAuthError,
    JiraRateLimitError,
    TemplateNotFoundError,
)
from weekly_report.jira_client import AuthenticationError, RateLimitError
from weekly_report.jira_client import IssueNotFoundError as JiraClientIssueNotFoundError
from weekly_report.models import FieldMappingConfig, IssueSelectionConfig, ReportRow
from weekly_report.report import (
    build_issue_report,
    generate_report,
    issue_report_to_dict,
    normalize_issue_key,
    report_row_to_dict,
)
from weekly_report.templates import TemplateStore


def _make_child(key, status, summary=None, labels=None, parent=None, **extra):
    """Build a raw child issue dict."""
    fields = {
        "summary": summary or f"Summary {key}",
        "status": {"name": status},
        "labels": labels if labels is not None else [],
        "issuetype": {"name": "Task"},
    }
    if parent:
        parent_key, parent_summary = parent
        fields["parent"] = {"key": parent_key, "fields": {"summary": parent_summary}}
    fields.update(extra)
    return {"key": key, "fields": fields}


def _make_template(**mapping):
    return {
        "fieldMapping": FieldMappingConfig.from_dict(mapping).to_dict(),
        "issueSelection": IssueSelectionConfig().to_dict(),
    }


def _make_store():
    persistence = MagicMock()
    persistence.read.return_value = []
    store = TemplateStore(persistence)
    store.load()
    return store


class TestGenerateReport:
    """Tests for generate_report."""

    def test_end_to_end_scenario(self):
        children = [
            _make_child("KAN-2", "Done", "Ship login", ["Alpha"], timespent=28800),
            _make_child("KAN-3", "In Progress", "Build signup", ["Alpha"], timespent=14400),
        ]

        rows = generate_report(children)

        assert rows == [
            ReportRow(
                category="Uncategorized",
                initiative="Alpha",
                last_week=["Ship login"],
                current_week=["Build signup"],
                next_week=[],
                later=[],
            )
        ]

    def test_groups_by_parent_then_initiative_in_first_seen_order(self):
        children = [
            _make_child("KAN-2", "Done", labels=["Beta"], parent=("KAN-10", "Payments")),
            _make_child("KAN-3", "To Do", labels=["Alpha"], parent=("KAN-11", "Search")),
            _make_child("KAN-4", "Blocked", labels=["Alpha"], parent=("KAN-10", "Payments")),
            _make_child("KAN-5", "En cours", labels=["Beta"], parent=("KAN-10", "Payments")),
        ]

        rows = generate_report(children, _make_template(categoryField="fields.summary"))

        assert [(r.category, r.initiative) for r in rows] == [
            ("Payments", "Beta"),
            ("Payments", "Alpha"),
            ("Search", "Alpha"),
        ]
        assert rows[0].last_week == ["Summary KAN-2"]
        assert rows[0].current_week == ["Summary KAN-5"]
        assert rows[1].later == ["Summary KAN-4"]
        assert rows[2].next_week == ["Summary KAN-3"]

    def test_unparented_children_share_a_group(self):
        children = [
            _make_child("KAN-2", "Done", labels=["Alpha"]),
            _make_child("KAN-3", "Done", labels=["Alpha"], parent=("KAN-10", "Payments")),
            _make_child("KAN-4", "Done", labels=["Alpha"]),
        ]

        rows = generate_report(children)

        assert [(r.category, r.last_week) for r in rows] == [
            ("Uncategorized", ["Summary KAN-2", "Summary KAN-4"]),
            ("Uncategorized", ["Summary KAN-3"]),
        ]

    def test_category_field_resolves_against_parent_object(self):
        children = [_make_child("KAN-2", "Done", labels=["Alpha"], parent=("KAN-10", "Payments"))]

        default_rows = generate_report(children)
        relative_rows = generate_report(children, _make_template(categoryField="fields.summary"))

        assert default_rows[0].category == "Uncategorized"
        assert relative_rows[0].category == "Payments"

    def test_joined_labels_form_initiative(self):
        children = [_make_child("KAN-2", "Done", labels=["Alpha", "Beta"])]

        rows = generate_report(children, _make_template(multiValueSeparator=" / "))

        assert rows[0].initiative == "Alpha / Beta"

    def test_first_label_forms_initiative(self):
        children = [_make_child("KAN-2", "Done", labels=["Alpha", "Beta"])]

        rows = generate_report(children, _make_template(multiValueHandling="first"))

        assert rows[0].initiative == "Alpha"

    def test_all_labels_fan_out_into_rows(self):
        children = [
            _make_child("KAN-2", "Done", labels=["Alpha", "Beta"]),
            _make_child("KAN-3", "To Do", labels=["Beta"]),
        ]

        rows = generate_report(children, _make_template(multiValueHandling="all"))

        assert [(r.initiative, r.last_week, r.next_week) for r in rows] == [
            ("Alpha", ["Summary KAN-2"], []),
            ("Beta", ["Summary KAN-2"], ["Summary KAN-3"]),
        ]

    def test_missing_initiative_uses_no_value(self):
        children = [
            _make_child("KAN-2", "Done", labels=[]),
            _make_child("KAN-3", "Done", labels=[None]),
        ]

        rows = generate_report(children)

        assert len(rows) == 1
        assert rows[0].initiative == "No value"

    def test_issue_item_falls_back_to_key(self):
        children = [_make_child("KAN-2", "Done", labels=["Alpha"])]

        rows = generate_report(children, _make_template(issueItemField="customfield_404"))

        assert rows[0].last_week == ["KAN-2"]

    def test_custom_fields_drive_columns(self):
        children = [
            _make_child(
                "KAN-2", "Done",
                parent=("KAN-10", "Payments"),
                assignee={"displayName": "Ada"},
                components=[{"name": "API"}],
            ),
        ]
        template = _make_template(
            categoryField="key",
            initiativeField="fields.components",
            issueItemField="fields.assignee",
        )

        rows = generate_report(children, template)

        assert report_row_to_dict(rows[0]) == {
            "category": "KAN-10",
            "initiative": "API",
            "lastWeek": ["Ada"],
            "currentWeek": [],
            "nextWeek": [],
            "later": [],
        }

    def test_parent_grouping_field_is_configurable(self):
        children = [
            _make_child("KAN-2", "Done", labels=["Alpha"], issuetype={"name": "Bug"}),
            _make_child("KAN-3", "Done", labels=["Alpha"], issuetype={"name": "Task"}),
        ]
        template = _make_template()
        template["issueSelection"]["parentGroupingField"] = "fields.issuetype.name"

        rows = generate_report(children, template)

        assert len(rows) == 2

    def test_malformed_template_falls_back(self):
        children = [_make_child("KAN-2", "Done", labels=["Alpha"])]
        template = {
            "fieldMapping": {
                "categoryField": None,
                "initiativeField": 42,
                "issueItemField": "",
                "multiValueHandling": "sideways",
                "multiValueSeparator": None,
            },
            "issueSelection": {"parentGroupingField": []},
        }

        rows = generate_report(children, template)

        assert [report_row_to_dict(r) for r in rows] == [{
            "category": "Uncategorized",
            "initiative": "No value",
            "lastWeek": ["KAN-2"],
            "currentWeek": [],
            "nextWeek": [],
            "later": [],
        }]

    def test_tolerates_sparse_issues(self):
        rows = generate_report([{"key": "KAN-2"}, {"key": "KAN-3", "fields": None}])

        assert len(rows) == 1
        assert rows[0].later == ["KAN-2", "KAN-3"]

    def test_nested_children_settings_do_not_expand_issues(self):
        children = [_make_child("KAN-2", "Done", labels=["Alpha"])]
        template = _make_template()
        template["issueSelection"].update({"includeNestedChildren": True, "maxDepth": 3})

        rows = generate_report(children, template)

        assert rows[0].last_week == ["Summary KAN-2"]

    def test_output_is_deterministic(self):
        children = [
            _make_child(f"KAN-{n}", status, labels=labels, parent=parent)
            for n, (status, labels, parent) in enumerate([
                ("Done", ["Alpha", "Beta"], ("KAN-10", "Payments")),
                ("Review", ["Gamma"], None),
                ("Open", ["Beta"], ("KAN-11", "Search")),
                ("Blocked", [], ("KAN-10", "Payments")),
            ], start=2)
        ]
        template = _make_template(multiValueHandling="all")

        first = [report_row_to_dict(r) for r in generate_report(children, template)]
        second = [report_row_to_dict(r) for r in generate_report(children, template)]

        assert first == second

    def test_empty_children(self):
        assert generate_report([]) == []


class TestNormalizeIssueKey:
    """Tests for normalize_issue_key."""

    def test_normalizes_case_and_whitespace(self):
        assert normalize_issue_key("  kan-1 ") == "KAN-1"

    @pytest.mark.parametrize("key", ["", "KAN", "KAN-", "1-KAN", "KAN-1-2", None])
    def test_rejects_malformed_keys(self, key):
        with pytest.raises(InvalidIssueKeyError):
            normalize_issue_key(key)


def _make_parent():
    return {
        "key": "KAN-1",
        "fields": {
            "summary": "Weekly initiative",
            "status": {"name": "Epic", "statusCategory": {"name": "In Progress"}},
            "issuetype": {"name": "Epic"},
            "labels": ["q3"],
            "assignee": {"displayName": "Ada"},
            "duedate": "2026-12-31",
        },
    }


def _make_client(parent=None, children=None):
    client = MagicMock()
    client.get_issue.return_value = parent or _make_parent()
    client.get_issue_children.return_value = children or []
    return client


class TestBuildIssueReport:
    """Tests for build_issue_report."""

    def test_builds_full_payload_with_default_template(self):
        children = [
            _make_child("KAN-2", "Done", "Ship login", ["Alpha"],
                        timespent=28800, timeestimate=28800),
            _make_child("KAN-3", "In Progress", "Build signup", ["Alpha"],
                        timespent=14400, timeestimate=28800),
        ]
        client = _make_client(children=children)
        store = _make_store()

        result = build_issue_report(
            "kan-1", client, store, "alice@example.com", today=date(2026, 10, 19),
        )
        data = issue_report_to_dict(result)

        client.get_issue.assert_called_once_with("KAN-1")
        assert data["childrenCount"] == 2
        assert data["report"] == [{
            "category": "Uncategorized",
            "initiative": "Alpha",
            "lastWeek": ["Ship login"],
            "currentWeek": ["Build signup"],
            "nextWeek": [],
            "later": [],
        }]
        assert data["timesheet"]["totalTimeSpentManDays"] == 1.5
        assert data["timesheet"]["totalTimeEstimateManDays"] == 2
        assert data["timesheet"]["remainingManDays"] == 0.5
        assert data["weekNumbers"] == {
            "lastWeek": 42, "currentWeek": 43, "nextWeek": 44, "year": 2026,
        }
        assert data["parentIssue"]["summary"] == "Weekly initiative"
        assert data["parentIssue"]["statusCategory"] == "In Progress"
        assert data["parentIssue"]["assignee"] == "Ada"
        assert data["parentIssue"]["endDate"] == "2026-12-31"
        assert store.get_templates_for_user("alice@example.com")[0].name == "Default"

    def test_uses_requested_template(self):
        store = _make_store()
        template = store.create_template(
            "By issue type",
            "alice@example.com",
            FieldMappingConfig(initiative_field="fields.issuetype.name"),
            IssueSelectionConfig(),
        )
        client = _make_client(children=[_make_child("KAN-2", "Done", labels=["Alpha"])])

        result = build_issue_report(
            "KAN-1", client, store, "alice@example.com", template_id=template.id,
        )

        assert result.report[0].initiative == "Task"

    def test_unreadable_template_raises(self):
        store = _make_store()
        template = store.create_template(
            "Private", "bob@example.com", FieldMappingConfig(), IssueSelectionConfig(),
        )

        with pytest.raises(TemplateNotFoundError):
            build_issue_report(
                "KAN-1", _make_client(), store, "alice@example.com", template_id=template.id,
            )

    def test_invalid_key_raises_before_fetching(self):
        client = _make_client()

        with pytest.raises(InvalidIssueKeyError):
            build_issue_report("not a key", client, _make_store(), "alice")

        client.get_issue.assert_not_called()

    @pytest.mark.parametrize("raised,expected", [
        (JiraClientIssueNotFoundError("missing"), IssueNotFoundError),
        (AuthenticationError("nope"), JiraAuthError),
        (RateLimitError("slow down"), JiraRateLimitError),
    ])
    def test_translates_client_errors(self, raised, expected):
        client = _make_client()
        client.get_issue.side_effect = raised

        with pytest.raises(expected):
            build_issue_report("KAN-1", client, _make_store(), "alice")
