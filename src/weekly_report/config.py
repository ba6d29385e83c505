"""Configuration management for the weekly report."""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import tomli_w

from weekly_report.exceptions import ConfigNotFoundError, InvalidConfigError

DEFAULT_USER = "default-user"


@dataclass
class Config:
    """Configuration for JIRA connection, template storage and requests."""

    jira_url: str
    jira_email: str
    jira_api_token: str
    data_dir: str | None = None
    default_user: str = DEFAULT_USER

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors: list[str] = []

        if not self.jira_url:
            errors.append("JIRA URL is required")
        else:
            parsed = urlparse(self.jira_url)
            if parsed.scheme not in ("http", "https"):
                errors.append("JIRA URL must start with http:// or https://")
            if not parsed.netloc:
                errors.append("JIRA URL must include a domain")

        if not self.jira_email:
            errors.append("JIRA email is required")
        elif "@" not in self.jira_email:
            errors.append("JIRA email must be a valid email address")

        if not self.jira_api_token:
            errors.append("JIRA API token is required")

        if not self.default_user or not self.default_user.strip():
            errors.append("Default user must not be empty")

        return errors


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".weekly-report"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def get_data_dir(config: Config | None = None) -> Path:
    """Get the directory holding templates.json."""
    if config is not None and config.data_dir:
        return Path(config.data_dir).expanduser()
    return get_config_dir() / "data"


def config_exists() -> bool:
    """Check if configuration file exists."""
    return get_config_path().exists()


def load_config() -> Config:
    """Load configuration from TOML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Create ~/.weekly-report/config.toml to set up."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    jira_section = data.get("jira", {})
    templates_section = data.get("templates", {})
    report_section = data.get("report", {})

    config = Config(
        jira_url=jira_section.get("url", ""),
        jira_email=jira_section.get("email", ""),
        jira_api_token=jira_section.get("api_token", ""),
        data_dir=templates_section.get("data_dir"),
        default_user=report_section.get("default_user", DEFAULT_USER),
    )

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def require_config() -> Config:
    """Load configuration for a caller that cannot run without it.

    Raises:
        ConfigNotFoundError: If config file doesn't exist
        InvalidConfigError: If config is invalid
    """
    if not config_exists():
        raise ConfigNotFoundError(
            "Configuration not found. Create ~/.weekly-report/config.toml to set up."
        )
    try:
        return load_config()
    except ValueError as e:
        raise InvalidConfigError(str(e))


def save_config(config: Config) -> None:
    """Save configuration to TOML file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config_path = get_config_path()

    data: dict = {
        "jira": {
            "url": config.jira_url,
            "email": config.jira_email,
            "api_token": config.jira_api_token,
        },
    }

    if config.data_dir:
        data["templates"] = {"data_dir": config.data_dir}

    if config.default_user and config.default_user != DEFAULT_USER:
        data["report"] = {"default_user": config.default_user}

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
