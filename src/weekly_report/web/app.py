"""Flask application factory for the weekly report API."""

from flask import Flask

from weekly_report.config import Config, get_data_dir, require_config
from weekly_report.exceptions import ConfigNotFoundError, InvalidConfigError
from weekly_report.jira_client import JiraClient
from weekly_report.templates import JsonTemplateFile, TemplateStore


def create_app(
    config: Config | None = None,
    store: TemplateStore | None = None,
    client_factory=None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Loaded configuration; read from ~/.weekly-report when None
        store: Template store; a JSON-file store under the data dir when None
        client_factory: Callable building a JIRA client from a Config
    """
    app = Flask(__name__)

    app.config["SECRET_KEY"] = "weekly-report-local-dev"

    if config is None:
        try:
            config = require_config()
        except ConfigNotFoundError as e:
            app.logger.warning("%s", e)
        except InvalidConfigError as e:
            app.logger.warning("Ignoring invalid configuration: %s", e)

    if store is None:
        store = TemplateStore(JsonTemplateFile(get_data_dir(config) / "templates.json"))
        store.load()

    app.extensions["weekly_report.config"] = config
    app.extensions["weekly_report.template_store"] = store
    app.extensions["weekly_report.client_factory"] = client_factory or JiraClient

    from weekly_report.web.routes import bp
    app.register_blueprint(bp)

    return app
