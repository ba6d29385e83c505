"""Data models for the weekly report."""

from dataclasses import dataclass, field
from enum import Enum

MULTI_VALUE_MODES = ("join", "first", "all")


class Section(str, Enum):
    """Weekly report column an issue lands in, derived from its status."""

    LAST_WEEK = "Last week"
    CURRENT_WEEK = "Current week"
    NEXT_WEEK = "Next week"
    LATER = "Later"


@dataclass
class FieldMappingConfig:
    """Which issue fields feed the Category, Initiative and item columns."""

    category_field: str = "fields.parent.fields.summary"
    initiative_field: str = "fields.labels"
    issue_item_field: str = "fields.summary"
    multi_value_handling: str = "join"  # "join" | "first" | "all"
    multi_value_separator: str = ", "

    def validate(self) -> list[str]:
        """Validate the mapping. Returns list of error messages."""
        errors: list[str] = []
        for label, value in (
            ("categoryField", self.category_field),
            ("initiativeField", self.initiative_field),
            ("issueItemField", self.issue_item_field),
        ):
            if not isinstance(value, str) or not value.strip():
                errors.append(f"{label} must be a non-empty field path")
        if self.multi_value_handling not in MULTI_VALUE_MODES:
            errors.append("multiValueHandling must be one of: join, first, all")
        if not isinstance(self.multi_value_separator, str):
            errors.append("multiValueSeparator must be a string")
        return errors

    def to_dict(self) -> dict:
        return {
            "categoryField": self.category_field,
            "initiativeField": self.initiative_field,
            "issueItemField": self.issue_item_field,
            "multiValueHandling": self.multi_value_handling,
            "multiValueSeparator": self.multi_value_separator,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "FieldMappingConfig":
        """Build from a camelCase dict. Missing keys keep their defaults."""
        data = data if isinstance(data, dict) else {}
        default = cls()
        return cls(
            category_field=data.get("categoryField", default.category_field),
            initiative_field=data.get("initiativeField", default.initiative_field),
            issue_item_field=data.get("issueItemField", default.issue_item_field),
            multi_value_handling=data.get("multiValueHandling", default.multi_value_handling),
            multi_value_separator=data.get("multiValueSeparator", default.multi_value_separator),
        )


@dataclass
class IssueSelectionConfig:
    """Which issues make it into the report and how they are grouped."""

    max_depth: int = 1
    include_nested_children: bool = False
    parent_grouping_field: str = "fields.parent.key"

    def validate(self) -> list[str]:
        """Validate the selection. Returns list of error messages."""
        errors: list[str] = []
        if (
            not isinstance(self.max_depth, int)
            or isinstance(self.max_depth, bool)
            or self.max_depth < 1
        ):
            errors.append("maxDepth must be an integer >= 1")
        if not isinstance(self.include_nested_children, bool):
            errors.append("includeNestedChildren must be a boolean")
        if not isinstance(self.parent_grouping_field, str) or not self.parent_grouping_field.strip():
            errors.append("parentGroupingField must be a non-empty field path")
        return errors

    def to_dict(self) -> dict:
        return {
            "maxDepth": self.max_depth,
            "includeNestedChildren": self.include_nested_children,
            "parentGroupingField": self.parent_grouping_field,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "IssueSelectionConfig":
        data = data if isinstance(data, dict) else {}
        default = cls()
        return cls(
            max_depth=data.get("maxDepth", default.max_depth),
            include_nested_children=data.get(
                "includeNestedChildren", default.include_nested_children
            ),
            parent_grouping_field=data.get("parentGroupingField", default.parent_grouping_field),
        )


@dataclass
class ReportTemplate:
    """A named, user-owned field mapping for the weekly report."""

    id: str
    name: str
    user_id: str
    field_mapping: FieldMappingConfig
    issue_selection: IssueSelectionConfig
    created_at: str  # ISO-8601
    updated_at: str  # ISO-8601
    description: str | None = None
    is_shared: bool = False


@dataclass
class ReportRow:
    """One (category, initiative) row of the weekly report."""

    category: str
    initiative: str
    last_week: list[str] = field(default_factory=list)
    current_week: list[str] = field(default_factory=list)
    next_week: list[str] = field(default_factory=list)
    later: list[str] = field(default_factory=list)

    def items_for(self, section: Section) -> list[str]:
        """Return the item list backing a section column."""
        return {
            Section.LAST_WEEK: self.last_week,
            Section.CURRENT_WEEK: self.current_week,
            Section.NEXT_WEEK: self.next_week,
            Section.LATER: self.later,
        }[section]


@dataclass
class TimesheetEntry:
    """Time figures for a single child issue."""

    issue_key: str
    summary: str
    timespent: float  # seconds
    timeestimate: float  # seconds
    timespent_hours: float
    timeestimate_hours: float
    remaining_hours: float
    timespent_man_days: float
    timeestimate_man_days: float
    remaining_man_days: float
    status: str


@dataclass
class TimesheetSummary:
    """Totals over all children plus the parent's own (aggregate) figures."""

    total_time_spent: float  # seconds
    total_time_spent_hours: float
    total_time_spent_man_days: float
    total_time_estimate: float  # seconds
    total_time_estimate_hours: float
    total_time_estimate_man_days: float
    remaining_hours: float
    remaining_man_days: float
    parent_time_spent: float  # seconds
    parent_time_spent_hours: float
    parent_time_spent_man_days: float
    parent_time_estimate: float  # seconds
    parent_time_estimate_hours: float
    parent_time_estimate_man_days: float
    parent_remaining_hours: float
    parent_remaining_man_days: float
    entries: list[TimesheetEntry] = field(default_factory=list)


@dataclass
class WeekNumbers:
    """ISO week numbers around a reference day."""

    last_week: int
    current_week: int
    next_week: int
    year: int


@dataclass
class IssueReport:
    """Complete result of a report request for one parent issue."""

    parent_issue: dict
    report: list[ReportRow]
    timesheet: TimesheetSummary
    week_numbers: WeekNumbers
    children_count: int
