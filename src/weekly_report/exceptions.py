"""Exception hierarchy for the weekly report."""


class WeeklyReportError(Exception):
    """Base exception for weekly report errors."""

    pass


class ConfigNotFoundError(WeeklyReportError):
    """Configuration file not found."""

    pass


class InvalidConfigError(WeeklyReportError):
    """Configuration is invalid."""

    pass


class JiraAuthError(WeeklyReportError):
    """JIRA authentication failed."""

    pass


class JiraConnectionError(WeeklyReportError):
    """Cannot connect to JIRA server."""

    pass


class JiraRateLimitError(WeeklyReportError):
    """JIRA rate limit exceeded."""

    pass


class InvalidIssueKeyError(WeeklyReportError):
    """Issue key is not of the form PROJ-123."""

    pass


class IssueNotFoundError(WeeklyReportError):
    """Parent issue does not exist or is not visible."""

    pass


class TemplateNotFoundError(WeeklyReportError):
    """Template does not exist or the user may not read it."""

    pass


class TemplateStorageError(WeeklyReportError):
    """Templates could not be written to storage."""

    pass
