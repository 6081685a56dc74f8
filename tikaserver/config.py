"""
Configuration loading for tikaserver.

Settings come from an optional YAML file with environment variable overrides
on top. Overrides use the TIKA_ prefix followed by the section and key:

    TIKA_SERVER_PORT=9000
    TIKA_SERVER_STARTUP_TIMEOUT=120
    TIKA_DOWNLOAD_VERSION=1.16
    TIKA_LOGGING_LEVEL=debug

Example config.yaml:

    server:
      jar: /opt/tika/tika-server-1.14.jar
      port: "9998"
      startup_timeout: 60
    download:
      version: "1.14"
    logging:
      level: info
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from .exceptions import InvalidArgumentError
from .probe import DEFAULT_INTERVAL
from .server import DEFAULT_PORT, DEFAULT_SHUTDOWN_TIMEOUT
from .versions import DEFAULT_REPOSITORY, Version

ENV_PREFIX = "TIKA_"

# Refuse to parse anything larger than this as a config file
MAX_CONFIG_SIZE_BYTES = 1024 * 1024


@dataclass
class ServerSettings:
    jar: str = ""
    port: str = DEFAULT_PORT
    java: str = "java"
    startup_timeout: float = 60.0
    poll_interval: float = DEFAULT_INTERVAL
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT


@dataclass
class DownloadSettings:
    version: str = Version.V1_14.value
    path: str = ""
    repository: str = DEFAULT_REPOSITORY

    def target(self) -> str:
        """Destination path, defaulting to tika-server-<version>.jar."""
        return self.path or f"tika-server-{self.version}.jar"


@dataclass
class LoggingSettings:
    level: str = "info"


@dataclass
class Settings:
    """All tikaserver settings, grouped by section."""

    server: ServerSettings = field(default_factory=ServerSettings)
    download: DownloadSettings = field(default_factory=DownloadSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def sections(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def load(
    path: str | Path | None = None, env: Mapping[str, str] | None = None
) -> Settings:
    """
    Load settings from a YAML file and the environment.

    Args:
        path: YAML config file (defaults only if None)
        env: Environment mapping (defaults to os.environ)

    Returns:
        Settings with file values and environment overrides applied

    Raises:
        InvalidArgumentError: If the file is unreadable, malformed, too
            large, or names an unknown section or key
    """
    settings = Settings()
    if path is not None:
        _apply(settings, _read_yaml(Path(path)), source=str(path))
    _apply(settings, _env_overrides(settings, os.environ if env is None else env), "env")
    return settings


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        size = path.stat().st_size
        if size > MAX_CONFIG_SIZE_BYTES:
            raise InvalidArgumentError(
                f"config file is {size} bytes, exceeding maximum size of "
                f"{MAX_CONFIG_SIZE_BYTES} bytes",
                path=str(path),
            )
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise InvalidArgumentError(f"cannot read config: {e}", path=str(path)) from e
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"malformed config: {e}", path=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgumentError("config must be a mapping", path=str(path))
    return data


def _env_overrides(settings: Settings, env: Mapping[str, str]) -> dict[str, Any]:
    """Collect TIKA_<SECTION>_<KEY> variables that name known settings."""
    overrides: dict[str, dict[str, str]] = {}
    sections = settings.sections()
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # Keys may contain underscores, sections may not
        section, _, name = key[len(ENV_PREFIX) :].lower().partition("_")
        if section not in sections:
            continue
        # Other tools share the prefix; only known settings are overrides
        if name in {f.name for f in dataclasses.fields(sections[section])}:
            overrides.setdefault(section, {})[name] = value
    return overrides


def _apply(settings: Settings, data: Mapping[str, Any], source: str) -> None:
    sections = settings.sections()
    for section_name, values in data.items():
        section = sections.get(section_name)
        if section is None:
            raise InvalidArgumentError(
                f"unknown config section {section_name!r}", source=source
            )
        if not isinstance(values, Mapping):
            raise InvalidArgumentError(
                f"config section {section_name!r} must be a mapping", source=source
            )
        fields = {f.name: f for f in dataclasses.fields(section)}
        for name, value in values.items():
            if name not in fields:
                raise InvalidArgumentError(
                    f"unknown config key {section_name}.{name}", source=source
                )
            setattr(section, name, _convert(section_name, name, value, fields[name]))


def _convert(section: str, name: str, value: Any, f: dataclasses.Field) -> Any:
    """Coerce a value to the type of the field's default."""
    kind = type(f.default)
    if value is None:
        return f.default
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(
            f"invalid value for {section}.{name}: {value!r}", expected=kind.__name__
        ) from e
