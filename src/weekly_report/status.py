"""Mapping of workflow status names onto weekly report sections."""

import re
import unicodedata

from weekly_report.models import Section

_COMBINING_MARKS_RE = re.compile("[\u0300-\u036f]")

# English and French vocabularies, accent-free. Checked in this order;
# the first vocabulary with a substring hit wins.
DONE_STATUSES = (
    "done",
    "closed",
    "resolved",
    "termine",
    "fini",
    "complete",
    "resolu",
)
IN_PROGRESS_STATUSES = (
    "in progress",
    "in development",
    "testing",
    "en cours",
    "en developpement",
    "en test",
    "en revue",
    "code review",
    "review",
)
TODO_STATUSES = (
    "to do",
    "open",
    "ready",
    "a faire",
    "a realiser",
    "nouveau",
    "nouvelle",
    "pret",
    "backlog",
)

_SECTION_VOCABULARIES = (
    (Section.LAST_WEEK, DONE_STATUSES),
    (Section.CURRENT_WEEK, IN_PROGRESS_STATUSES),
    (Section.NEXT_WEEK, TODO_STATUSES),
)


def normalize_status(status_name: str | None) -> str:
    """Lowercase a status name and strip its accents ("Terminé" -> "termine")."""
    if not isinstance(status_name, str):
        return ""
    decomposed = unicodedata.normalize("NFD", status_name.lower())
    return _COMBINING_MARKS_RE.sub("", decomposed)


def categorize(status_name: str | None) -> Section:
    """Map a status name to the section its issue is reported in.

    Done statuses go to last week, in-progress ones to the current week,
    to-do ones to next week and anything unrecognised to later.
    """
    normalized = normalize_status(status_name)
    for section, vocabulary in _SECTION_VOCABULARIES:
        if any(term in normalized for term in vocabulary):
            return section
    return Section.LATER
