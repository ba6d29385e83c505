"""Storage and retrieval of report templates.

Templates are kept in memory, keyed by id, and written through to a
persistence collaborator after every mutation. The bundled collaborator
stores them as one JSON array in ``templates.json``.
"""

import copy
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from weekly_report.exceptions import TemplateStorageError
from weekly_report.models import FieldMappingConfig, IssueSelectionConfig, ReportTemplate

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NAME = "Default"
DEFAULT_TEMPLATE_DESCRIPTION = "Default template matching original behavior"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_user_id(user_id: str | None) -> str:
    """Canonical form used for every ownership comparison."""
    if not isinstance(user_id, str):
        return ""
    return user_id.strip().lower()


def default_field_mapping() -> FieldMappingConfig:
    return FieldMappingConfig()


def default_issue_selection() -> IssueSelectionConfig:
    return IssueSelectionConfig()


def _now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_timestamp(value) -> datetime:
    if not value or not isinstance(value, str):
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def template_to_dict(template: ReportTemplate) -> dict:
    """Convert a ReportTemplate to its stored/JSON shape."""
    data: dict = {"id": template.id, "name": template.name}
    if template.description is not None:
        data["description"] = template.description
    data.update({
        "userId": template.user_id,
        "isShared": template.is_shared,
        "fieldMapping": template.field_mapping.to_dict(),
        "issueSelection": template.issue_selection.to_dict(),
        "createdAt": template.created_at,
        "updatedAt": template.updated_at,
    })
    return data


def template_from_dict(data: dict) -> ReportTemplate:
    """Build a ReportTemplate from its stored/JSON shape.

    Raises:
        KeyError: If ``id`` is missing
    """
    now = _now_iso()
    return ReportTemplate(
        id=data["id"],
        name=data.get("name", ""),
        description=data.get("description"),
        user_id=data.get("userId", ""),
        is_shared=bool(data.get("isShared", False)),
        field_mapping=FieldMappingConfig.from_dict(data.get("fieldMapping")),
        issue_selection=IssueSelectionConfig.from_dict(data.get("issueSelection")),
        created_at=data.get("createdAt", now),
        updated_at=data.get("updatedAt", now),
    )


class JsonTemplateFile:
    """Persist templates as a single JSON array on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> list[dict] | None:
        """Return stored records, or None when no file exists yet."""
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return data

    def write(self, records: list[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)


class TemplateStore:
    """In-memory template index backed by a persistence collaborator.

    Every method that checks ownership compares user ids through
    normalize_user_id, so "Alice@Example.com" and "alice@example.com "
    are the same owner. Templates are readable by their owner, or by
    anyone when shared; only the owner may change them.
    """

    def __init__(self, persistence) -> None:
        self._persistence = persistence
        self._templates: dict[str, ReportTemplate] = {}
        self._lock = threading.RLock()

    def load(self) -> None:
        """Load templates from storage, creating an empty store if none exists."""
        with self._lock:
            try:
                records = self._persistence.read()
            except (OSError, ValueError) as e:
                logger.error("Error loading templates: %s", e)
                self._templates = {}
                return

            if records is None:
                self._templates = {}
                self.flush()
                return

            templates: dict[str, ReportTemplate] = {}
            for record in records:
                try:
                    template = template_from_dict(record)
                except (KeyError, TypeError, AttributeError) as e:
                    logger.warning("Skipping malformed template record: %s", e)
                    continue
                templates[template.id] = template
            self._templates = templates
            logger.info("Loaded %d templates", len(templates))

    def flush(self) -> None:
        """Write all templates to storage.

        Raises:
            TemplateStorageError: If the write fails
        """
        with self._lock:
            records = [template_to_dict(t) for t in self._templates.values()]
            try:
                self._persistence.write(records)
            except (OSError, TypeError, ValueError) as e:
                logger.error("Error saving templates: %s", e)
                raise TemplateStorageError("Failed to save templates") from e

    def _is_owner(self, template: ReportTemplate, user_id: str | None) -> bool:
        return normalize_user_id(template.user_id) == normalize_user_id(user_id)

    def _save(self, template: ReportTemplate) -> None:
        with self._lock:
            now = _now_iso()
            if template.id not in self._templates:
                template.created_at = now
            template.updated_at = now
            self._templates[template.id] = template
            self.flush()

    def get_templates_for_user(
        self, user_id: str, include_shared: bool = True
    ) -> list[ReportTemplate]:
        """Templates owned by the user (plus shared ones), newest first."""
        with self._lock:
            visible = [
                t for t in self._templates.values()
                if self._is_owner(t, user_id) or (include_shared and t.is_shared)
            ]
        return sorted(visible, key=lambda t: _parse_timestamp(t.updated_at), reverse=True)

    def get_template(self, template_id: str, user_id: str) -> ReportTemplate | None:
        """Get a template the user may read, or None.

        Private templates of other users are reported as missing.
        """
        with self._lock:
            template = self._templates.get(template_id)
        if template is None:
            return None
        if not self._is_owner(template, user_id) and not template.is_shared:
            return None
        return template

    def get_default_template(self, user_id: str) -> ReportTemplate:
        """Get the user's "Default" template, creating it on first use."""
        with self._lock:
            for template in self.get_templates_for_user(user_id, include_shared=False):
                if template.name == DEFAULT_TEMPLATE_NAME:
                    return template

            template = ReportTemplate(
                id=str(uuid.uuid4()),
                name=DEFAULT_TEMPLATE_NAME,
                description=DEFAULT_TEMPLATE_DESCRIPTION,
                user_id=user_id,
                is_shared=False,
                field_mapping=default_field_mapping(),
                issue_selection=default_issue_selection(),
                created_at=_now_iso(),
                updated_at=_now_iso(),
            )
            self._save(template)
            logger.info("Created default template %s for %s", template.id, user_id)
            return template

    def create_template(
        self,
        name: str,
        user_id: str,
        field_mapping: FieldMappingConfig,
        issue_selection: IssueSelectionConfig,
        description: str | None = None,
        is_shared: bool = False,
    ) -> ReportTemplate | None:
        """Create and persist a new template owned by ``user_id``.

        Returns:
            The new template, or None if ``name`` is the reserved "Default"
        """
        if name == DEFAULT_TEMPLATE_NAME:
            return None

        template = ReportTemplate(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            user_id=user_id,
            is_shared=bool(is_shared),
            field_mapping=copy.deepcopy(field_mapping),
            issue_selection=copy.deepcopy(issue_selection),
            created_at=_now_iso(),
            updated_at=_now_iso(),
        )
        self._save(template)
        logger.info("Created template %s (%s) for %s", template.id, name, user_id)
        return template

    def update_template(
        self, template_id: str, user_id: str, updates: dict
    ) -> ReportTemplate | None:
        """Apply camelCase ``updates`` to a template the user owns.

        Recognised keys are name, description, isShared, fieldMapping and
        issueSelection; id, owner and creation time never change. Renaming
        a "Default" template, or renaming another template to "Default",
        is ignored while the remaining updates still apply.

        Returns:
            The updated template, or None if missing or not owned
        """
        with self._lock:
            template = self._templates.get(template_id)
            if template is None or not self._is_owner(template, user_id):
                return None

            updated = copy.deepcopy(template)
            new_name = updates.get("name")
            if (
                isinstance(new_name, str)
                and new_name
                and template.name != DEFAULT_TEMPLATE_NAME
                and new_name != DEFAULT_TEMPLATE_NAME
            ):
                updated.name = new_name
            if "description" in updates:
                updated.description = updates["description"]
            if "isShared" in updates:
                updated.is_shared = bool(updates["isShared"])
            if "fieldMapping" in updates:
                merged = {**updated.field_mapping.to_dict(), **_as_dict(updates["fieldMapping"])}
                updated.field_mapping = FieldMappingConfig.from_dict(merged)
            if "issueSelection" in updates:
                merged = {**updated.issue_selection.to_dict(), **_as_dict(updates["issueSelection"])}
                updated.issue_selection = IssueSelectionConfig.from_dict(merged)

            self._save(updated)
            logger.info("Updated template %s", template_id)
            return updated

    def delete_template(self, template_id: str, user_id: str) -> bool:
        """Delete a template the user owns. "Default" templates cannot be deleted."""
        with self._lock:
            template = self._templates.get(template_id)
            if template is None or not self._is_owner(template, user_id):
                return False
            if template.name == DEFAULT_TEMPLATE_NAME:
                return False

            del self._templates[template_id]
            self.flush()
            logger.info("Deleted template %s", template_id)
            return True

    def clone_template(
        self, template_id: str, user_id: str, new_name: str
    ) -> ReportTemplate | None:
        """Copy a readable template into a new private template owned by ``user_id``.

        Returns None if the source is not readable or ``new_name`` is "Default".
        """
        if new_name == DEFAULT_TEMPLATE_NAME:
            return None

        with self._lock:
            source = self.get_template(template_id, user_id)
            if source is None:
                return None

            clone = copy.deepcopy(source)
            clone.id = str(uuid.uuid4())
            clone.name = new_name
            clone.user_id = user_id
            clone.is_shared = False
            self._save(clone)
            logger.info("Cloned template %s into %s", template_id, clone.id)
            return clone
