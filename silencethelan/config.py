"""Configuration loading for silencethelan.

Loads settings from TOML config file with CLI override support.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomli

from silencethelan.identity import MAX_CUSTOM_PREFIXES

logger = logging.getLogger(__name__)


def get_config_search_paths() -> list[Path]:
    """Get list of paths to search for config file."""
    return [
        Path("silencethelan.toml"),  # Current directory
        Path.home() / ".config" / "silencethelan" / "silencethelan.toml",
        Path("/etc/silencethelan/silencethelan.toml"),
    ]


def find_config_file() -> Optional[Path]:
    """Find the first existing config file."""
    for path in get_config_search_paths():
        if path.exists():
            return path
    return None


@dataclass
class Config:
    """Loaded configuration with all sections."""

    # Database
    db_path: Path = field(
        default_factory=lambda: Path.home() / ".local" / "share" / "silencethelan" / "rules.db"
    )

    # Controller reachability
    controller_host: Optional[str] = None
    probe_timeout: float = 3.0
    reachability_cache_ttl: int = 30
    verify_tls: bool = False

    # Rules
    custom_prefixes: list[str] = field(default_factory=list)

    # Slack
    slack_enabled: bool = False
    slack_webhook_url: Optional[str] = None
    slack_notify_failures: bool = False


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from TOML file.

    Args:
        config_path: Explicit path to config file, or None to search

    Returns:
        Config object with loaded values
    """
    config = Config()

    if config_path is None:
        config_path = find_config_file()

    if config_path is None or not config_path.exists():
        logger.debug("No config file found, using defaults")
        return config

    logger.info(f"Loading config from {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config file: {e}")
        return config

    # Database section
    if "database" in data:
        db = data["database"]
        if "path" in db:
            config.db_path = Path(db["path"]).expanduser()

    # Controller section
    if "controller" in data:
        controller = data["controller"]
        if "host" in controller:
            config.controller_host = controller["host"] or None
        if "probe_timeout" in controller:
            config.probe_timeout = float(controller["probe_timeout"])
        if "cache_ttl" in controller:
            config.reachability_cache_ttl = controller["cache_ttl"]
        if "verify_tls" in controller:
            config.verify_tls = controller["verify_tls"]

    # Rules section
    if "rules" in data:
        rules = data["rules"]
        if "custom_prefixes" in rules:
            prefixes = list(rules["custom_prefixes"])
            if len(prefixes) > MAX_CUSTOM_PREFIXES:
                logger.warning(
                    f"Only {MAX_CUSTOM_PREFIXES} custom prefixes are supported, "
                    f"ignoring {prefixes[MAX_CUSTOM_PREFIXES:]}"
                )
            config.custom_prefixes = prefixes[:MAX_CUSTOM_PREFIXES]

    # Slack section
    if "slack" in data:
        slack = data["slack"]
        if "enabled" in slack:
            config.slack_enabled = slack["enabled"]
        if "webhook_url" in slack:
            config.slack_webhook_url = slack["webhook_url"]
        if "notify_failures" in slack:
            config.slack_notify_failures = slack["notify_failures"]

    return config


def merge_cli_options(config: Config, **cli_options: Any) -> Config:
    """Merge CLI options into config (CLI takes precedence).

    Args:
        config: Base config from file
        **cli_options: CLI option overrides (None values are ignored)

    Returns:
        Config with CLI overrides applied
    """
    mappings = {
        "db": "db_path",
        "host": "controller_host",
        "timeout": "probe_timeout",
        "prefix": "custom_prefixes",
    }

    for cli_name, config_name in mappings.items():
        if cli_name in cli_options:
            value = cli_options[cli_name]
            # Only override if CLI value is meaningful
            if value is not None and value != () and value != "":
                if cli_name == "prefix" and isinstance(value, tuple):
                    value = list(value)[:MAX_CUSTOM_PREFIXES]
                if cli_name == "db":
                    value = Path(value)
                setattr(config, config_name, value)

    return config
