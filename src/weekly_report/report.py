"""Weekly report generation from a parent issue's children."""

import re
from datetime import date

from weekly_report.exceptions import (
    InvalidIssueKeyError,
    IssueNotFoundError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
    TemplateNotFoundError,
)
from weekly_report.fields import display_value, extract_issue_fields, format_value, resolve
from weekly_report.jira_client import (
    AuthenticationError,
    RateLimitError,
)
from weekly_report.jira_client import (
    ConnectionError as JiraClientConnectionError,
)
from weekly_report.jira_client import (
    IssueNotFoundError as JiraClientIssueNotFoundError,
)
from weekly_report.models import (
    FieldMappingConfig,
    IssueReport,
    IssueSelectionConfig,
    ReportRow,
    ReportTemplate,
)
from weekly_report.status import categorize
from weekly_report.timesheet import generate_timesheet, timesheet_to_dict
from weekly_report.weeks import get_week_numbers, week_numbers_to_dict

ISSUE_KEY_RE = re.compile(r"^[A-Z]+-\d+$")

UNPARENTED = "UNPARENTED"
UNCATEGORIZED = "Uncategorized"
NO_VALUE = "No value"
NO_INITIATIVE = "No initiative"


def _template_configs(
    template: ReportTemplate | dict | None,
) -> tuple[FieldMappingConfig, IssueSelectionConfig]:
    """Pull field mapping and issue selection out of a template object or dict."""
    if isinstance(template, ReportTemplate):
        return template.field_mapping, template.issue_selection
    if isinstance(template, dict):
        mapping = template.get("fieldMapping")
        selection = template.get("issueSelection")
        return (
            FieldMappingConfig.from_dict(mapping) if mapping else FieldMappingConfig(),
            IssueSelectionConfig.from_dict(selection) if selection else IssueSelectionConfig(),
        )
    return FieldMappingConfig(), IssueSelectionConfig()


def _fields(issue) -> dict:
    fields = issue.get("fields") if isinstance(issue, dict) else None
    return fields if isinstance(fields, dict) else {}


def _group_key(value):
    """Dict key for a grouping value; unhashable values group by identity."""
    try:
        hash(value)
    except TypeError:
        return ("object", id(value))
    return value


def _select_issues(issues: list[dict], selection: IssueSelectionConfig) -> list[dict]:
    """Apply the issue selection to the fetched children.

    Only direct children are ever fetched, so nested expansion
    (include_nested_children / max_depth) leaves the list unchanged.
    """
    return list(issues)


def _group_by_parent(issues: list[dict], parent_grouping_field: str) -> dict:
    grouped: dict = {}
    for issue in issues:
        parent_key = resolve(issue, parent_grouping_field) or UNPARENTED
        grouped.setdefault(_group_key(parent_key), []).append(issue)
    return grouped


def _group_by_field(
    issues: list[dict], field_path: str, multi_value_handling: str, separator: str
) -> dict[str, list[dict]]:
    """Group issues by the display value of a field.

    With "all" handling, an issue with several values joins one group per value.
    """
    grouped: dict[str, list[dict]] = {}
    for issue in issues:
        value = resolve(issue, field_path)
        formatted = format_value(
            value,
            multi_value_handling=multi_value_handling,
            separator=separator,
            fallback=NO_VALUE,
        )

        if isinstance(formatted, (list, tuple)):
            for item in formatted:
                key = format_value(item, fallback=NO_VALUE) or NO_VALUE
                grouped.setdefault(key, []).append(issue)
        else:
            grouped.setdefault(formatted or NO_VALUE, []).append(issue)
    return grouped


def _category(first_child: dict, category_field: str) -> str:
    """Category label of a group, resolved against the first child's parent object.

    The path is relative to the parent, so the default
    ``fields.parent.fields.summary`` only matches a grandparent summary.
    """
    parent = _fields(first_child).get("parent")
    if not parent or not isinstance(parent, dict):
        return UNCATEGORIZED
    parent_issue = {**parent, "fields": parent.get("fields") or {}}
    category = display_value(parent_issue, category_field, fallback=UNCATEGORIZED)
    return category if isinstance(category, str) else UNCATEGORIZED


def _issue_item(issue: dict, issue_item_field: str) -> str:
    fallback = issue.get("key") or "-"
    item = display_value(issue, issue_item_field, separator=", ", fallback=fallback)
    return item if isinstance(item, str) else fallback


def _status_name(issue: dict) -> str | None:
    status = _fields(issue).get("status")
    return status.get("name") if isinstance(status, dict) else None


def generate_report(
    children: list[dict], template: ReportTemplate | dict | None = None
) -> list[ReportRow]:
    """Build weekly report rows from a parent issue's children.

    Children are grouped by the template's parent grouping field, then by
    the formatted initiative field; each (category, initiative) pair becomes
    one row whose items are sorted into sections by workflow status. Rows
    come out in first-seen order of the groups, never re-sorted.

    Unknown or malformed template fields fall back to placeholder strings
    instead of raising.

    Args:
        children: Raw child issue dicts
        template: ReportTemplate, template dict (camelCase) or None for defaults

    Returns:
        List of ReportRow
    """
    field_mapping, issue_selection = _template_configs(template)
    issues = [i for i in _select_issues(children or [], issue_selection) if isinstance(i, dict)]

    rows: list[ReportRow] = []
    grouped_by_parent = _group_by_parent(issues, issue_selection.parent_grouping_field)

    for child_issues in grouped_by_parent.values():
        category = _category(child_issues[0], field_mapping.category_field)

        grouped_by_initiative = _group_by_field(
            child_issues,
            field_mapping.initiative_field,
            field_mapping.multi_value_handling,
            field_mapping.multi_value_separator,
        )

        for initiative, group_issues in grouped_by_initiative.items():
            row = ReportRow(category=category, initiative=initiative or NO_INITIATIVE)
            for issue in group_issues:
                section = categorize(_status_name(issue))
                row.items_for(section).append(_issue_item(issue, field_mapping.issue_item_field))
            rows.append(row)

    return rows


def report_row_to_dict(row: ReportRow) -> dict:
    return {
        "category": row.category,
        "initiative": row.initiative,
        "lastWeek": list(row.last_week),
        "currentWeek": list(row.current_week),
        "nextWeek": list(row.next_week),
        "later": list(row.later),
    }


def normalize_issue_key(issue_key: str) -> str:
    """Upper-case and validate an issue key.

    Raises:
        InvalidIssueKeyError: If the key is not of the form PROJ-123
    """
    normalized = (issue_key or "").strip().upper()
    if not ISSUE_KEY_RE.match(normalized):
        raise InvalidIssueKeyError(
            f'Invalid ticket key format: "{issue_key}". Expected format: PROJ-123'
        )
    return normalized


def _parent_issue_details(issue: dict) -> dict:
    fields = _fields(issue)
    extra = extract_issue_fields(issue)
    status = fields.get("status") or {}
    return {
        "key": issue.get("key", ""),
        "summary": fields.get("summary", ""),
        "status": status.get("name", ""),
        "statusCategory": (status.get("statusCategory") or {}).get("name", ""),
        "issuetype": (fields.get("issuetype") or {}).get("name") or "Unknown",
        "labels": fields.get("labels") or [],
        "assignee": extra["assignee"],
        "startDate": extra["startDate"],
        "endDate": extra["duedate"],
        "confidence": extra["confidence"],
    }


def build_issue_report(
    issue_key: str,
    client,
    store,
    user_id: str,
    template_id: str | None = None,
    today: date | None = None,
) -> IssueReport:
    """Fetch a parent issue and its children and build the full report.

    Args:
        issue_key: Parent issue key, e.g. "KAN-1" (case-insensitive)
        client: JiraClient used to fetch the issues
        store: TemplateStore holding the user's templates
        user_id: Requesting user
        template_id: Template to use; the user's default template when None
        today: Reference day for week numbers

    Returns:
        IssueReport with report rows, timesheet and week numbers

    Raises:
        InvalidIssueKeyError: If the key is malformed
        TemplateNotFoundError: If the template is missing or not readable
        IssueNotFoundError: If the parent issue does not exist
        JiraAuthError: If JIRA authentication fails
        JiraRateLimitError: If rate limited
        JiraConnectionError: If cannot connect
    """
    normalized_key = normalize_issue_key(issue_key)

    if template_id:
        template = store.get_template(template_id, user_id)
        if template is None:
            raise TemplateNotFoundError("Template not found or access denied")
    else:
        template = store.get_default_template(user_id)

    try:
        parent = client.get_issue(normalized_key)
        children = client.get_issue_children(normalized_key, parent=parent)
    except JiraClientIssueNotFoundError as e:
        raise IssueNotFoundError(str(e))
    except AuthenticationError:
        raise JiraAuthError(
            "JIRA authentication failed. Check your credentials in "
            "~/.weekly-report/config.toml."
        )
    except RateLimitError:
        raise JiraRateLimitError(
            "JIRA rate limit exceeded. Please wait a moment and try again."
        )
    except JiraClientConnectionError as e:
        raise JiraConnectionError(str(e))

    return IssueReport(
        parent_issue=_parent_issue_details(parent),
        report=generate_report(children, template),
        timesheet=generate_timesheet(parent, children),
        week_numbers=get_week_numbers(today),
        children_count=len(children),
    )


def issue_report_to_dict(result: IssueReport) -> dict:
    """Convert IssueReport to the JSON response payload."""
    return {
        "parentIssue": result.parent_issue,
        "report": [report_row_to_dict(row) for row in result.report],
        "timesheet": timesheet_to_dict(result.timesheet),
        "weekNumbers": week_numbers_to_dict(result.week_numbers),
        "childrenCount": result.children_count,
    }
