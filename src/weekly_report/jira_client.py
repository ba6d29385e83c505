"""JIRA API client with retry logic."""

from jira import JIRA, JIRAError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from weekly_report.config import Config

# Fields the report and timesheet read from child issues
CHILD_FIELDS = [
    "summary",
    "status",
    "labels",
    "issuetype",
    "parent",
    "assignee",
    "timespent",
    "timeestimate",
    "aggregatetimespent",
    "aggregatetimeestimate",
]


class RateLimitError(Exception):
    """Raised when JIRA API rate limit is hit."""

    pass


class AuthenticationError(Exception):
    """Raised when JIRA authentication fails."""

    pass


class ConnectionError(Exception):
    """Raised when JIRA server cannot be reached."""

    pass


class IssueNotFoundError(Exception):
    """Raised when an issue does not exist or is not visible."""

    pass


def _raise_for_status(e: JIRAError, issue_key: str = "") -> None:
    if e.status_code == 429:
        raise RateLimitError(
            "Rate limited by JIRA. Retrying with exponential backoff..."
        ) from e
    if e.status_code in (401, 403):
        raise AuthenticationError(
            "Authentication failed. Check your email and API token."
        ) from e
    if e.status_code == 404 and issue_key:
        raise IssueNotFoundError(
            f"Issue {issue_key} does not exist or you do not have permission to see it."
        ) from e


class JiraClient:
    """Client for interacting with JIRA Cloud API."""

    def __init__(self, config: Config) -> None:
        """Initialize JIRA client with configuration."""
        self.config = config
        self._client: JIRA | None = None

    def _get_client(self) -> JIRA:
        """Get or create JIRA client instance."""
        if self._client is None:
            try:
                self._client = JIRA(
                    server=self.config.jira_url,
                    basic_auth=(self.config.jira_email, self.config.jira_api_token),
                    timeout=15,
                )
            except JIRAError as e:
                if e.status_code == 401:
                    raise AuthenticationError(
                        "Authentication failed. Check your email and API token."
                    ) from e
                raise
            except Exception as e:
                error_msg = str(e).lower()
                if "connection" in error_msg or "resolve" in error_msg or "timeout" in error_msg:
                    raise ConnectionError(
                        f"Cannot connect to JIRA server at {self.config.jira_url}. "
                        "Check the URL and your network connection."
                    ) from e
                raise
        return self._client

    @retry(
        retry=retry_if_exception_type(RateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True,
    )
    def get_issue(self, issue_key: str) -> dict:
        """Fetch a single issue with all of its fields.

        Raises:
            RateLimitError: If rate limited (will be retried)
            AuthenticationError: If authentication fails
            IssueNotFoundError: If the issue does not exist
        """
        client = self._get_client()
        try:
            issue = client.issue(issue_key, expand="names")
        except JIRAError as e:
            _raise_for_status(e, issue_key)
            raise
        return self._issue_to_dict(issue)

    def _search(self, jql: str) -> list[dict]:
        client = self._get_client()
        result = client.enhanced_search_issues(jql, maxResults=0, fields=CHILD_FIELDS)
        return [self._issue_to_dict(issue) for issue in result]

    @retry(
        retry=retry_if_exception_type(RateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True,
    )
    def get_issue_children(self, issue_key: str, parent: dict | None = None) -> list[dict]:
        """Fetch the direct children of an issue.

        Epics are queried through "Epic Link", everything else through the
        parent field. If the parent query is rejected, the Epic Link query
        is tried instead (older company-managed projects). Pass the already
        fetched ``parent`` to skip looking it up again.

        Returns:
            List of raw issue dicts ordered by status
        """
        if parent is None:
            parent = self.get_issue(issue_key)
        issue_type = (
            (parent.get("fields", {}).get("issuetype") or {}).get("name", "") or ""
        ).lower()

        epic_jql = f'"Epic Link" = {issue_key} ORDER BY status ASC'
        if "epic" in issue_type:
            jql = epic_jql
        else:
            jql = f"parent = {issue_key} ORDER BY status ASC"

        try:
            return self._search(jql)
        except JIRAError as e:
            _raise_for_status(e)
            if "epic" in issue_type:
                raise
        try:
            return self._search(epic_jql)
        except JIRAError as e:
            _raise_for_status(e)
            raise

    def _issue_to_dict(self, issue) -> dict:
        """Convert JIRA issue object to dictionary."""
        raw = issue.raw
        result = {
            "key": issue.key,
            "id": raw.get("id", ""),
            "fields": raw.get("fields", {}),
        }
        if raw.get("names"):
            result["names"] = raw["names"]
        return result
