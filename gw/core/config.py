"""Typed loading of ``go-workflow.toml``.

The file is optional. Every section falls back to defaults that match a
bun/npm project published through a GitHub Actions workflow.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_list,
    get_str,
    get_table,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "CommandSpec",
    "ConfigError",
    "GitConfig",
    "MonitorConfig",
    "PublishMode",
    "QualityConfig",
    "ReleaseConfig",
    "WorkflowConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = "go-workflow.toml"

PublishMode = Literal["inline", "delegated"]
CommandSpec = tuple[str, ...]

DEFAULT_LINT_COMMANDS: tuple[CommandSpec, ...] = (
    ("bun", "run", "lint:fix"),
    ("npm", "run", "lint:fix"),
    ("bunx", "eslint", ".", "--fix"),
    ("npx", "eslint", ".", "--fix"),
)
DEFAULT_TYPECHECK_COMMANDS: tuple[CommandSpec, ...] = (
    ("bun", "run", "typecheck"),
    ("npm", "run", "typecheck"),
    ("bunx", "tsc", "--noEmit"),
)
DEFAULT_TEST_COMMANDS: tuple[CommandSpec, ...] = (
    ("bun", "run", "test:ci"),
    ("bun", "run", "test"),
    ("bun", "test"),
    ("npm", "run", "test:ci"),
    ("npm", "run", "test"),
    ("npm", "test"),
)
DEFAULT_BUILD_COMMANDS: tuple[CommandSpec, ...] = (
    ("bun", "run", "build"),
    ("npm", "run", "build"),
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class GitConfig:
    remote: str = "origin"
    tag_prefix: str = "v"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    manifest: str = "package.json"
    changelog: str = "CHANGELOG.md"
    # delegated: a workflow triggered by the GitHub release publishes to npm
    publish_mode: PublishMode = "delegated"
    commit_limit: int = 50


@dataclass(frozen=True, slots=True)
class QualityConfig:
    typecheck: bool = True
    lint: tuple[CommandSpec, ...] = DEFAULT_LINT_COMMANDS
    typecheck_commands: tuple[CommandSpec, ...] = DEFAULT_TYPECHECK_COMMANDS
    test: tuple[CommandSpec, ...] = DEFAULT_TEST_COMMANDS
    build: tuple[CommandSpec, ...] = DEFAULT_BUILD_COMMANDS


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    find_attempts: int = 30
    find_interval: float = 1.0
    watch_attempts: int = 60
    watch_interval: float = 5.0


@dataclass(frozen=True, slots=True)
class WorkflowConfig:
    """Main configuration container."""

    git: GitConfig = field(default_factory=GitConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> WorkflowConfig:
        """Create a config from parsed TOML.

        Raises:
            ValueError: on values of the right key but wrong shape.
        """
        git: StrDict = get_table(data, "git") or {}
        release: StrDict = get_table(data, "release") or {}
        quality: StrDict = get_table(data, "quality") or {}
        monitor: StrDict = get_table(data, "monitor") or {}

        publish_mode = get_str(release, "publish_mode") or "delegated"
        if publish_mode not in ("inline", "delegated"):
            raise ValueError(f"release.publish_mode must be 'inline' or 'delegated', got {publish_mode!r}")

        typecheck = get_bool(quality, "typecheck")

        return cls(
            git=GitConfig(
                remote=get_str(git, "remote") or "origin",
                tag_prefix=get_str(git, "tag_prefix") or "v",
            ),
            release=ReleaseConfig(
                manifest=get_str(release, "manifest") or "package.json",
                changelog=get_str(release, "changelog") or "CHANGELOG.md",
                publish_mode="inline" if publish_mode == "inline" else "delegated",
                commit_limit=get_int(release, "commit_limit") or 50,
            ),
            quality=QualityConfig(
                typecheck=True if typecheck is None else typecheck,
                lint=_commands(quality, "lint", DEFAULT_LINT_COMMANDS),
                typecheck_commands=_commands(
                    quality, "typecheck_commands", DEFAULT_TYPECHECK_COMMANDS
                ),
                test=_commands(quality, "test", DEFAULT_TEST_COMMANDS),
                build=_commands(quality, "build", DEFAULT_BUILD_COMMANDS),
            ),
            monitor=MonitorConfig(
                find_attempts=get_int(monitor, "find_attempts") or 30,
                find_interval=_non_negative(get_float(monitor, "find_interval"), 1.0),
                watch_attempts=get_int(monitor, "watch_attempts") or 60,
                watch_interval=_non_negative(get_float(monitor, "watch_interval"), 5.0),
            ),
        )


def _non_negative(value: float | None, default: float) -> float:
    if value is None or value < 0:
        return default
    return value


def _commands(
    table: Mapping[str, object],
    key: str,
    default: tuple[CommandSpec, ...],
) -> tuple[CommandSpec, ...]:
    raw = get_list(table, key)
    if raw is None:
        return default

    out: list[CommandSpec] = []
    for item in raw:
        argv = as_obj_list(item)
        if argv is None or not argv or not all(isinstance(a, str) and a for a in argv):
            raise ValueError(f"quality.{key} entries must be non-empty lists of strings")
        out.append(tuple(str(a) for a in argv))
    return tuple(out)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[WorkflowConfig, ConfigError]:
    """Load and validate ``go-workflow.toml``.

    Args:
        path: Path to the config file

    Returns:
        Ok(WorkflowConfig) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(WorkflowConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(root: Path) -> Result[WorkflowConfig, ConfigError]:
    """Load ``<root>/go-workflow.toml`` when present, defaults otherwise.

    A present but invalid file is still an error.
    """
    path = root / CONFIG_FILE_NAME
    if not path.exists():
        return Ok(WorkflowConfig())
    return load_config(path)
