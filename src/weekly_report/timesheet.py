"""Time-tracking aggregation for a parent issue and its children."""

import math

from weekly_report.models import TimesheetEntry, TimesheetSummary
from weekly_report.timeunits import hours_to_man_days, round_half_up, seconds_to_hours


def _finite(value) -> float:
    """Guard an output figure: NaN or infinity becomes 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value if math.isfinite(value) else 0


def _seconds(fields: dict, *names: str) -> float:
    """First truthy numeric value among the given time fields, else 0."""
    for name in names:
        value = _finite(fields.get(name))
        if value:
            return value
    return 0


def _remaining_hours(estimate_hours: float, spent_hours: float) -> float:
    return _finite(round_half_up(_finite(estimate_hours) - _finite(spent_hours)))


def _fields(issue) -> dict:
    if not isinstance(issue, dict):
        return {}
    fields = issue.get("fields")
    return fields if isinstance(fields, dict) else {}


def _status_name(fields: dict) -> str:
    status = fields.get("status")
    if isinstance(status, dict) and isinstance(status.get("name"), str):
        return status["name"]
    return ""


def _build_entry(issue: dict) -> TimesheetEntry:
    fields = _fields(issue)
    timespent = _seconds(fields, "timespent")
    timeestimate = _seconds(fields, "timeestimate")

    timespent_hours = seconds_to_hours(timespent)
    timeestimate_hours = seconds_to_hours(timeestimate)
    remaining_hours = _remaining_hours(timeestimate_hours, timespent_hours)

    return TimesheetEntry(
        issue_key=issue.get("key", "") if isinstance(issue, dict) else "",
        summary=fields.get("summary") or "",
        timespent=timespent,
        timeestimate=timeestimate,
        timespent_hours=_finite(timespent_hours),
        timeestimate_hours=_finite(timeestimate_hours),
        remaining_hours=_finite(remaining_hours),
        timespent_man_days=_finite(hours_to_man_days(timespent_hours)),
        timeestimate_man_days=_finite(hours_to_man_days(timeestimate_hours)),
        remaining_man_days=_finite(hours_to_man_days(remaining_hours)),
        status=_status_name(fields),
    )


def generate_timesheet(parent: dict, children: list[dict]) -> TimesheetSummary:
    """Aggregate time spent and estimated for a parent issue and its children.

    The parent's figures come from its aggregate time fields when set,
    falling back to its own ``timespent``/``timeestimate``. Totals are the
    sum of each child's own (non-aggregate) fields. Every figure is given in
    seconds, hours and man-days, and none of them is ever NaN.

    Args:
        parent: Raw parent issue dict
        children: Raw child issue dicts, in report order

    Returns:
        TimesheetSummary with one entry per child
    """
    parent_fields = _fields(parent)
    parent_time_spent = _seconds(parent_fields, "aggregatetimespent", "timespent")
    parent_time_estimate = _seconds(parent_fields, "aggregatetimeestimate", "timeestimate")

    entries: list[TimesheetEntry] = []
    total_time_spent = 0
    total_time_estimate = 0

    for child in children or []:
        entry = _build_entry(child)
        total_time_spent += entry.timespent
        total_time_estimate += entry.timeestimate
        entries.append(entry)

    total_spent_hours = seconds_to_hours(total_time_spent)
    total_estimate_hours = seconds_to_hours(total_time_estimate)
    remaining_hours = _remaining_hours(total_estimate_hours, total_spent_hours)

    parent_spent_hours = seconds_to_hours(parent_time_spent)
    parent_estimate_hours = seconds_to_hours(parent_time_estimate)
    parent_remaining_hours = _remaining_hours(parent_estimate_hours, parent_spent_hours)

    return TimesheetSummary(
        total_time_spent=_finite(total_time_spent),
        total_time_spent_hours=_finite(total_spent_hours),
        total_time_spent_man_days=_finite(hours_to_man_days(total_spent_hours)),
        total_time_estimate=_finite(total_time_estimate),
        total_time_estimate_hours=_finite(total_estimate_hours),
        total_time_estimate_man_days=_finite(hours_to_man_days(total_estimate_hours)),
        remaining_hours=_finite(remaining_hours),
        remaining_man_days=_finite(hours_to_man_days(remaining_hours)),
        parent_time_spent=parent_time_spent,
        parent_time_spent_hours=_finite(parent_spent_hours),
        parent_time_spent_man_days=_finite(hours_to_man_days(parent_spent_hours)),
        parent_time_estimate=parent_time_estimate,
        parent_time_estimate_hours=_finite(parent_estimate_hours),
        parent_time_estimate_man_days=_finite(hours_to_man_days(parent_estimate_hours)),
        parent_remaining_hours=_finite(parent_remaining_hours),
        parent_remaining_man_days=_finite(hours_to_man_days(parent_remaining_hours)),
        entries=entries,
    )


def timesheet_entry_to_dict(entry: TimesheetEntry) -> dict:
    return {
        "issueKey": entry.issue_key,
        "summary": entry.summary,
        "timespent": entry.timespent,
        "timeestimate": entry.timeestimate,
        "timespentHours": entry.timespent_hours,
        "timeestimateHours": entry.timeestimate_hours,
        "remainingHours": entry.remaining_hours,
        "timespentManDays": entry.timespent_man_days,
        "timeestimateManDays": entry.timeestimate_man_days,
        "remainingManDays": entry.remaining_man_days,
        "status": entry.status,
    }


def timesheet_to_dict(summary: TimesheetSummary) -> dict:
    """Convert a TimesheetSummary to the camelCase shape existing consumers read."""
    return {
        "totalTimeSpent": summary.total_time_spent,
        "totalTimeSpentHours": summary.total_time_spent_hours,
        "totalTimeSpentManDays": summary.total_time_spent_man_days,
        "totalTimeEstimate": summary.total_time_estimate,
        "totalTimeEstimateHours": summary.total_time_estimate_hours,
        "totalTimeEstimateManDays": summary.total_time_estimate_man_days,
        "remainingHours": summary.remaining_hours,
        "remainingManDays": summary.remaining_man_days,
        "entries": [timesheet_entry_to_dict(e) for e in summary.entries],
        "parentTimeSpent": summary.parent_time_spent,
        "parentTimeSpentHours": summary.parent_time_spent_hours,
        "parentTimeSpentManDays": summary.parent_time_spent_man_days,
        "parentTimeEstimate": summary.parent_time_estimate,
        "parentTimeEstimateHours": summary.parent_time_estimate_hours,
        "parentTimeEstimateManDays": summary.parent_time_estimate_man_days,
        "parentRemainingHours": summary.parent_remaining_hours,
        "parentRemainingManDays": summary.parent_remaining_man_days,
    }
