"""HTTP route handlers for the weekly report API."""

from flask import Blueprint, current_app, jsonify, request

from weekly_report.config import DEFAULT_USER
from weekly_report.exceptions import (
    InvalidIssueKeyError,
    IssueNotFoundError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
    TemplateNotFoundError,
    TemplateStorageError,
    WeeklyReportError,
)
from weekly_report.models import FieldMappingConfig, IssueSelectionConfig
from weekly_report.report import build_issue_report, issue_report_to_dict
from weekly_report.templates import DEFAULT_TEMPLATE_NAME, template_to_dict

bp = Blueprint("main", __name__)

NOT_FOUND_MESSAGE = "Template not found or access denied"
RESERVED_NAME_MESSAGE = f'Template name "{DEFAULT_TEMPLATE_NAME}" is reserved'


def _config():
    return current_app.extensions["weekly_report.config"]


def _store():
    return current_app.extensions["weekly_report.template_store"]


def _user_id() -> str:
    """Requesting user: X-User-Id header, else the configured default user."""
    header = request.headers.get("X-User-Id", "").strip()
    if header:
        return header
    config = _config()
    return config.default_user if config is not None else DEFAULT_USER


def _error(message: str, status: int):
    return jsonify({"error": message}), status


@bp.errorhandler(TemplateStorageError)
def handle_storage_error(e):
    current_app.logger.error("Template storage failed: %s", e)
    return _error(str(e), 500)


@bp.route("/health")
def health():
    """Health check endpoint."""
    config_loaded = _config() is not None
    if config_loaded:
        return jsonify({"status": "ok", "config_loaded": True})
    else:
        return jsonify({
            "status": "error",
            "config_loaded": False,
            "message": "Configuration not found",
        }), 503


@bp.route("/api/report/<issue_key>")
def report(issue_key):
    """Build the weekly report and timesheet for a parent issue."""
    config = _config()
    if config is None:
        return _error("Configuration not found. Create ~/.weekly-report/config.toml.", 503)

    template_id = request.args.get("templateId") or None
    client = current_app.extensions["weekly_report.client_factory"](config)

    try:
        result = build_issue_report(
            issue_key, client, _store(), _user_id(), template_id=template_id,
        )
    except InvalidIssueKeyError as e:
        return _error(str(e), 400)
    except (TemplateNotFoundError, IssueNotFoundError) as e:
        return _error(str(e), 404)
    except JiraAuthError as e:
        return _error(str(e), 401)
    except JiraRateLimitError as e:
        return _error(str(e), 429)
    except JiraConnectionError as e:
        return _error(str(e), 503)
    except TemplateStorageError:
        raise
    except WeeklyReportError as e:
        return _error(str(e), 500)

    return jsonify(issue_report_to_dict(result))


@bp.route("/api/templates")
def list_templates():
    """Templates of the current user, plus shared ones unless includeShared=false."""
    include_shared = request.args.get("includeShared", "true").lower() != "false"
    templates = _store().get_templates_for_user(_user_id(), include_shared)
    return jsonify([template_to_dict(t) for t in templates])


@bp.route("/api/templates/default")
def default_template():
    """The current user's Default template, created on first request."""
    return jsonify(template_to_dict(_store().get_default_template(_user_id())))


@bp.route("/api/templates/<template_id>")
def get_template(template_id):
    template = _store().get_template(template_id, _user_id())
    if template is None:
        return _error(NOT_FOUND_MESSAGE, 404)
    return jsonify(template_to_dict(template))


def _validation_errors(data: dict, partial: bool) -> list[str]:
    errors: list[str] = []
    if not partial:
        for name in ("name", "fieldMapping", "issueSelection"):
            if not data.get(name):
                errors.append(f"Missing required field: {name}")
        if errors:
            return errors

    if "name" in data and (not isinstance(data["name"], str) or not data["name"].strip()):
        errors.append("name must be a non-empty string")
    elif not partial and data["name"].strip() == DEFAULT_TEMPLATE_NAME:
        errors.append(RESERVED_NAME_MESSAGE)
    if "isShared" in data and not isinstance(data["isShared"], bool):
        errors.append("isShared must be a boolean")
    if "fieldMapping" in data:
        if not isinstance(data["fieldMapping"], dict):
            errors.append("fieldMapping must be an object")
        else:
            errors.extend(FieldMappingConfig.from_dict(data["fieldMapping"]).validate())
    if "issueSelection" in data:
        if not isinstance(data["issueSelection"], dict):
            errors.append("issueSelection must be an object")
        else:
            errors.extend(IssueSelectionConfig.from_dict(data["issueSelection"]).validate())
    return errors


@bp.route("/api/templates", methods=["POST"])
def create_template():
    """Create a template owned by the current user."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("Missing request body", 400)

    errors = _validation_errors(data, partial=False)
    if errors:
        return _error("; ".join(errors), 400)

    template = _store().create_template(
        name=data["name"].strip(),
        user_id=_user_id(),
        field_mapping=FieldMappingConfig.from_dict(data["fieldMapping"]),
        issue_selection=IssueSelectionConfig.from_dict(data["issueSelection"]),
        description=data.get("description"),
        is_shared=bool(data.get("isShared", False)),
    )
    return jsonify(template_to_dict(template)), 201


@bp.route("/api/templates/<template_id>", methods=["PUT"])
def update_template(template_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("Missing request body", 400)

    errors = _validation_errors(data, partial=True)
    if errors:
        return _error("; ".join(errors), 400)

    template = _store().update_template(template_id, _user_id(), data)
    if template is None:
        return _error(NOT_FOUND_MESSAGE, 404)
    return jsonify(template_to_dict(template))


@bp.route("/api/templates/<template_id>", methods=["DELETE"])
def delete_template(template_id):
    if not _store().delete_template(template_id, _user_id()):
        return _error(
            "Template not found, access denied, or cannot delete default template", 404
        )
    return "", 204


@bp.route("/api/templates/<template_id>/clone", methods=["POST"])
def clone_template(template_id):
    """Copy a readable template into a private one owned by the current user."""
    data = request.get_json(silent=True) or {}
    name = data.get("name") if isinstance(data, dict) else None
    if not isinstance(name, str) or not name.strip():
        return _error("Missing required field: name", 400)
    if name.strip() == DEFAULT_TEMPLATE_NAME:
        return _error(RESERVED_NAME_MESSAGE, 400)

    template = _store().clone_template(template_id, _user_id(), name.strip())
    if template is None:
        return _error(NOT_FOUND_MESSAGE, 404)
    return jsonify(template_to_dict(template)), 201
