"""Configuration: load and validate config.toml (endpoint and rule table)."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fleet_triage.rules import (
    DEFAULT_RULES,
    PRIORITY_LABELS,
    ROLES,
    Channel,
    NotificationRule,
    Recipients,
    RuleConditions,
    RuleTable,
    Trigger,
)

DEFAULT_BASE_URL = "http://localhost:3000"


class ConfigError(Exception):
    """Raised when config.toml is malformed or missing required fields."""


@dataclass
class Settings:
    """Runtime settings for lookups, senders and the rule table."""

    base_url: str = DEFAULT_BASE_URL
    rules: RuleTable = field(default_factory=lambda: DEFAULT_RULES)


def get_config_path() -> Path:
    """Return the path to config.toml, respecting XDG_CONFIG_HOME."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "fleet-triage" / "config.toml"


def _str_tuple(entry: dict[str, Any], key: str, where: str) -> tuple[str, ...] | None:
    value = entry.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        msg = f"{where}: '{key}' must be a list"
        raise ConfigError(msg)
    return tuple(str(v) for v in value)


def _table(entry: dict[str, Any], key: str, where: str) -> dict[str, Any]:
    value = entry.get(key, {})
    if not isinstance(value, dict):
        msg = f"{where}: '{key}' must be a table"
        raise ConfigError(msg)
    return value


def _parse_rule(entry: dict[str, Any], where: str) -> NotificationRule:
    if not isinstance(entry, dict):
        msg = f"{where} must be a table"
        raise ConfigError(msg)
    for key in ("id", "name", "trigger", "template", "channels", "priority"):
        if key not in entry:
            msg = f"{where} is missing required field '{key}'"
            raise ConfigError(msg)
    if not isinstance(entry["channels"], list):
        msg = f"{where}: 'channels' must be a list"
        raise ConfigError(msg)

    try:
        trigger = Trigger(entry["trigger"])
        channels = tuple(Channel(c) for c in entry["channels"])
    except ValueError as e:
        msg = f"{where}: {e}"
        raise ConfigError(msg) from e
    if entry["priority"] not in PRIORITY_LABELS:
        msg = f"{where}: priority must be one of {', '.join(PRIORITY_LABELS)}"
        raise ConfigError(msg)

    raw_conditions = _table(entry, "conditions", where)
    min_age = raw_conditions.get("min_age_minutes")
    if min_age is not None and (isinstance(min_age, bool) or not isinstance(min_age, int | float)):
        msg = f"{where}: 'min_age_minutes' must be a number"
        raise ConfigError(msg)
    conditions = RuleConditions(
        severity=_str_tuple(raw_conditions, "severity", where),
        status=_str_tuple(raw_conditions, "status", where),
        category=_str_tuple(raw_conditions, "category", where),
        fleet_numbers=_str_tuple(raw_conditions, "fleet_numbers", where),
        min_age_minutes=min_age,
    )

    raw_recipients = _table(entry, "recipients", where)
    recipients = Recipients(
        roles=_str_tuple(raw_recipients, "roles", where) or (),
        emails=_str_tuple(raw_recipients, "emails", where) or (),
        phones=_str_tuple(raw_recipients, "phones", where) or (),
    )
    unknown_roles = [r for r in recipients.roles if r not in ROLES]
    if unknown_roles:
        msg = f"{where}: unknown role(s) {', '.join(unknown_roles)}"
        raise ConfigError(msg)

    return NotificationRule(
        id=entry["id"],
        name=entry["name"],
        trigger=trigger,
        template=entry["template"],
        channels=channels,
        priority=entry["priority"],
        conditions=conditions,
        recipients=recipients,
        enabled=bool(entry.get("enabled", True)),
    )


def load_settings(path: Path) -> Settings:
    """Load settings from a TOML file.

    Returns defaults if the file does not exist. A ``[[rules]]`` array, when
    present, replaces the built-in rule table entirely.
    Raises ConfigError on parse errors or invalid rules.
    """
    if not path.exists():
        return Settings()

    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e

    settings = Settings(base_url=data.get("base_url", DEFAULT_BASE_URL))
    raw_rules = data.get("rules")
    if raw_rules is not None:
        if not isinstance(raw_rules, list):
            msg = f"'rules' in {path} must be an array of tables"
            raise ConfigError(msg)
        rules = [_parse_rule(entry, f"Rule {i} in {path}") for i, entry in enumerate(raw_rules)]
        seen: set[str] = set()
        for rule in rules:
            if rule.id in seen:
                msg = f"Duplicate rule id '{rule.id}' in {path}"
                raise ConfigError(msg)
            seen.add(rule.id)
        settings.rules = RuleTable(rules)
    return settings
