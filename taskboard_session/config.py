"""
Configuration for the session core.

Settings come from environment variables, optionally layered over the
``session:`` section of a YAML settings file:

```yaml
session:
  api_url: "https://project.example.co"
  api_key: "anon-key"
  profiles_table: "profiles"
  persist_key: "auth-storage"
  persist_fields: []
  request_timeout: 10
  log_level: "INFO"
```

Environment variables always win over the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ValidationError

DEFAULT_STATE_DIR = Path.home() / ".taskboard"

# Config field -> environment variable
ENV_VARS = {
    "api_url": "TASKBOARD_API_URL",
    "api_key": "TASKBOARD_API_KEY",
    "profiles_table": "TASKBOARD_PROFILES_TABLE",
    "persist_key": "TASKBOARD_PERSIST_KEY",
    "persist_path": "TASKBOARD_PERSIST_PATH",
    "session_path": "TASKBOARD_SESSION_PATH",
    "persist_fields": "TASKBOARD_PERSIST_FIELDS",
    "request_timeout": "TASKBOARD_REQUEST_TIMEOUT",
    "log_level": "TASKBOARD_LOG_LEVEL",
}


@dataclass
class SessionConfig:
    """Configuration for the session core.

    Environment Variables:
        TASKBOARD_API_URL: Base URL of the hosted auth/table service
        TASKBOARD_API_KEY: Public API key for the hosted service
        TASKBOARD_PROFILES_TABLE: Profiles table name (default: profiles)
        TASKBOARD_PERSIST_KEY: Key of the persisted state document (default: auth-storage)
        TASKBOARD_PERSIST_PATH: Directory for persisted state (default: ~/.taskboard/state)
        TASKBOARD_SESSION_PATH: Durable session file (default: ~/.taskboard/session.json)
        TASKBOARD_PERSIST_FIELDS: Comma separated store fields to persist (default: none)
        TASKBOARD_REQUEST_TIMEOUT: Request timeout in seconds (default: 10)
        TASKBOARD_LOG_LEVEL: Log level name (default: INFO)

    Attributes:
        api_url: Base URL of the hosted service
        api_key: Public API key
        profiles_table: Name of the profiles table
        persist_key: Key the persister stores its document under
        persist_path: Directory of the file persistence adapter
        session_path: File the hosted provider keeps its session in
        persist_fields: Store fields retained across restarts
        request_timeout: Total HTTP request timeout in seconds
        log_level: Log level for configure_structured_logging
    """

    api_url: str | None = None
    api_key: str | None = None
    profiles_table: str = "profiles"
    persist_key: str = "auth-storage"
    persist_path: Path = field(default_factory=lambda: DEFAULT_STATE_DIR / "state")
    session_path: Path = field(default_factory=lambda: DEFAULT_STATE_DIR / "session.json")
    persist_fields: tuple[str, ...] = ()
    request_timeout: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> SessionConfig:
        """Create configuration from environment variables.

        Returns:
            SessionConfig populated from environment variables
        """
        return cls.from_mapping(_environment_values())

    @classmethod
    def from_settings_file(cls, path: Path) -> SessionConfig:
        """Create configuration from a YAML settings file.

        Values from the ``session:`` section are overridden by any
        TASKBOARD_* environment variables that are set. A missing file
        yields the environment-only configuration.

        Raises:
            ValidationError: If the file is not valid YAML or the
                section is not a mapping
        """
        path = Path(path).expanduser()
        values: dict[str, Any] = {}
        if path.exists():
            try:
                document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            except yaml.YAMLError as e:
                raise ValidationError("settings_file", f"invalid YAML: {e}", str(path)) from e
            section = document.get("session", {}) if isinstance(document, dict) else None
            if not isinstance(section, dict):
                raise ValidationError("settings_file", "session section must be a mapping", str(path))
            values.update(section)

        values.update(_environment_values())
        return cls.from_mapping(values)

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> SessionConfig:
        """Build a config from raw values, ignoring unknown keys.

        Raises:
            ValidationError: For values that cannot be converted
        """
        known = {f.name for f in fields(cls)}
        kwargs = {
            name: _coerce(name, value)
            for name, value in values.items()
            if name in known and value is not None
        }
        return cls(**kwargs)

    def validate(self, require_remote: bool = True) -> None:
        """Check the configuration.

        Args:
            require_remote: Whether the hosted adapters will be built

        Raises:
            ValidationError: For missing or invalid values
        """
        if require_remote:
            if not self.api_url:
                raise ValidationError("api_url", f"required ({ENV_VARS['api_url']})")
            if not self.api_url.startswith(("http://", "https://")):
                raise ValidationError("api_url", "must be an http(s) URL", self.api_url)
            if not self.api_key:
                raise ValidationError("api_key", f"required ({ENV_VARS['api_key']})")
        if not self.profiles_table:
            raise ValidationError("profiles_table", "must not be empty")
        if not self.persist_key:
            raise ValidationError("persist_key", "must not be empty")
        if self.request_timeout <= 0:
            raise ValidationError("request_timeout", "must be positive", str(self.request_timeout))


def _environment_values() -> dict[str, str]:
    return {name: os.environ[var] for name, var in ENV_VARS.items() if os.environ.get(var)}


def _coerce(name: str, value: Any) -> Any:
    if name in ("persist_path", "session_path"):
        return Path(str(value)).expanduser()
    if name == "persist_fields":
        if isinstance(value, str):
            value = value.split(",")
        return tuple(str(v).strip() for v in value if str(v).strip())
    if name == "request_timeout":
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(name, "must be a number", str(value)) from e
    if name == "log_level":
        return str(value).upper()
    return str(value)
