"""
issuegraph.config - Configuration loading and defaults

Configuration is read from ``.issuegraph.toml`` (found by walking up from
the working directory), merged over DEFAULT_CONFIG, then overridden by
environment variables:

- ``ISSUEGRAPH_<SECTION>_<KEY>`` sets ``[section] key`` for any section
- ``JIRA_BASE_URL``, ``JIRA_EMAIL``, ``JIRA_API_TOKEN``,
  ``JIRA_BEARER_TOKEN``, ``JIRA_SESSION_COOKIES`` fill ``[tracker]``
- ``LOG_LEVEL`` sets ``[logging] level``
"""

from __future__ import annotations

import copy
import json
import os
import re
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from issuegraph.config.defaults import DEFAULT_CONFIG
from issuegraph.exceptions import ConfigError

CONFIG_FILENAME = ".issuegraph.toml"
ENV_PREFIX = "ISSUEGRAPH_"

# Variable name -> (section, key)
TRACKER_ENV_VARS = {
    "JIRA_BASE_URL": ("tracker", "base_url"),
    "JIRA_EMAIL": ("tracker", "email"),
    "JIRA_API_TOKEN": ("tracker", "api_token"),
    "JIRA_BEARER_TOKEN": ("tracker", "bearer_token"),
    "JIRA_SESSION_COOKIES": ("tracker", "session_cookies"),
    "LOG_LEVEL": ("logging", "level"),
}

# Credentials are opaque strings, even when they look like numbers
SECRET_KEYS = ("api_token", "bearer_token", "session_cookies")
STRING_SETTINGS = frozenset(
    [("tracker", key) for key in SECRET_KEYS] + [("tracker", "email"), ("tracker", "base_url")]
)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_INT_PATTERN = re.compile(r"^-?\d+$")


# ─────────────────────────────────────────────────────────────────────────────
# TOML
# ─────────────────────────────────────────────────────────────────────────────


def parse_toml_document(text: str) -> tomlkit.TOMLDocument:
    """Parse TOML text keeping comments and layout (for round-trips)."""
    return tomlkit.parse(text)


def parse_toml(text: str) -> dict[str, Any]:
    """Parse TOML text into plain Python dicts and lists."""
    return parse_toml_document(text).unwrap()


# ─────────────────────────────────────────────────────────────────────────────
# Loading
# ─────────────────────────────────────────────────────────────────────────────


def find_config_file(start_path: Path) -> Path | None:
    """Find .issuegraph.toml in start_path or any parent directory.

    Args:
        start_path: Directory to start searching from.

    Returns:
        Path to the config file, or None if not found.
    """
    current = Path(start_path).resolve()
    if current.is_file():
        current = current.parent

    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``.

    Nested dicts merge key by key; any other value in ``override``
    replaces the base value.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_config(config_path: Path) -> dict[str, Any]:
    """Load a config file merged over the defaults.

    Environment overrides are not applied here; see get_config().

    Raises:
        ConfigError: If the file cannot be read or is not valid TOML.
    """
    try:
        text = Path(config_path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    try:
        user_config = parse_toml(text)
    except TOMLKitError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    return merge_configs(DEFAULT_CONFIG, user_config)


# ─────────────────────────────────────────────────────────────────────────────
# Environment overrides
# ─────────────────────────────────────────────────────────────────────────────


def _try_parse_env_value(value: str) -> Any:
    """Parse an environment value into a typed value where it looks like one.

    JSON arrays and objects become lists and dicts, ``true``/``false``
    (any case) become booleans and plain integers become ints. Everything
    else, including malformed JSON, is returned unchanged.
    """
    stripped = value.strip()
    if stripped[:1] in ("[", "{"):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value

    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_PATTERN.match(stripped):
        return int(stripped)
    return value


def _set_value(config: dict[str, Any], section: str, key: str, value: Any) -> None:
    target = config.get(section)
    if not isinstance(target, dict):
        target = {}
        config[section] = target
    target[key] = value


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides to ``config`` in place.

    ``ISSUEGRAPH_TRACKER_BASE_URL`` sets ``config["tracker"]["base_url"]``:
    the first segment after the prefix names the section, the rest the key.
    The tracker variables are applied first so the prefixed form wins.
    """
    for env_name, (section, key) in TRACKER_ENV_VARS.items():
        value = os.environ.get(env_name)
        if value:
            _set_value(config, section, key, value)

    for env_name, value in os.environ.items():
        if not env_name.startswith(ENV_PREFIX):
            continue
        parts = env_name[len(ENV_PREFIX) :].lower().split("_", 1)
        if len(parts) != 2 or not all(parts):
            continue
        section, key = parts
        if (section, key) not in STRING_SETTINGS:
            value = _try_parse_env_value(value)
        _set_value(config, section, key, value)

    return config


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────


def validate_config(config: dict[str, Any]) -> list[str]:
    """Check the tracker settings needed to talk to Jira.

    Returns:
        Human-readable problems; empty when the configuration is usable.
    """
    errors: list[str] = []
    tracker = config.get("tracker", {})

    base_url = str(tracker.get("base_url") or "").strip()
    if not base_url:
        errors.append("tracker.base_url is required (or set JIRA_BASE_URL)")
    elif not re.match(r"^https?://[^/\s]+", base_url):
        errors.append(f"tracker.base_url must be an http(s) URL, got '{base_url}'")

    email = str(tracker.get("email") or "").strip()
    api_token = str(tracker.get("api_token") or "").strip()
    bearer_token = str(tracker.get("bearer_token") or "").strip()
    session_cookies = str(tracker.get("session_cookies") or "").strip()

    if not ((email and api_token) or bearer_token or session_cookies):
        errors.append(
            "No authentication configured: set tracker.email and tracker.api_token, "
            "tracker.bearer_token, or tracker.session_cookies"
        )
    if email and not _EMAIL_PATTERN.match(email):
        errors.append(f"tracker.email is not a valid email address: '{email}'")

    for section, key in (
        ("tracker", "timeout"),
        ("tracker", "requests_per_second"),
        ("tracker", "max_concurrency"),
        ("hierarchy", "max_results"),
        ("hierarchy", "max_depth"),
    ):
        value = config.get(section, {}).get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            errors.append(f"{section}.{key} must be a positive number, got {value!r}")

    return errors


def get_config(
    config_path: Path | None = None,
    start_path: Path | None = None,
) -> dict[str, Any]:
    """Load the effective configuration.

    Args:
        config_path: Explicit config file; must exist when given.
        start_path: Directory to search from when no path is given
            (defaults to the current directory).

    Returns:
        Defaults, merged with the config file (if any), then env overrides.

    Raises:
        ConfigError: If an explicit path is missing or a file is invalid.
    """
    if config_path is not None:
        config_path = Path(config_path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_file(start_path or Path.cwd())

    if config_path is not None:
        config = load_config(config_path)
    else:
        config = copy.deepcopy(DEFAULT_CONFIG)

    return _apply_env_overrides(config)


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "SECRET_KEYS",
    "find_config_file",
    "get_config",
    "load_config",
    "merge_configs",
    "parse_toml",
    "parse_toml_document",
    "validate_config",
]
