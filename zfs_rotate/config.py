"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for 3.10
    import tomli as tomllib  # type: ignore[no-redef]

from zfs_rotate.naming import GROUP_RE, SNAPSHOT_SEPARATOR

DEFAULT_LOG_LEVEL = "info"
DEFAULT_ZFS_COMMAND = "zfs"
DEFAULT_RECURSIVE = False

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(frozen=True)
class GlobalConfig:
    log_level: str
    zfs_command: str


@dataclass(frozen=True)
class RotationDefaults:
    recursive: bool


@dataclass(frozen=True)
class Config:
    global_cfg: GlobalConfig
    defaults: RotationDefaults

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Config":
        global_data = data.get("global", {})
        rotation_data = data.get("rotation", {})

        global_cfg = GlobalConfig(
            log_level=str(global_data.get("log_level", DEFAULT_LOG_LEVEL)),
            zfs_command=str(
                global_data.get("zfs_command", DEFAULT_ZFS_COMMAND)
            ),
        )
        recursive = rotation_data.get("recursive", DEFAULT_RECURSIVE)
        if not isinstance(recursive, bool):
            raise ConfigError("rotation.recursive must be true or false")
        config = Config(
            global_cfg=global_cfg,
            defaults=RotationDefaults(recursive=recursive),
        )
        validate_config(config)
        return config

    @staticmethod
    def default() -> "Config":
        return Config.from_dict({})


@dataclass(frozen=True)
class RotationConfig:
    """One invocation: snapshot ``filesystem`` and keep ``keep`` of ``group``."""

    filesystem: str
    group: str
    keep: int
    recursive: bool = False
    dry_run: bool = False


def load_config(path: Path) -> Config:
    if not path.is_absolute():
        raise ConfigError(f"config path must be absolute: {path}")
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"failed to read config: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc
    return Config.from_dict(data)


def validate_config(config: Config) -> None:
    _validate_log_level(config.global_cfg.log_level)
    if not config.global_cfg.zfs_command:
        raise ConfigError("global.zfs_command is required")


def build_rotation_config(
    filesystem: str,
    group: str,
    keep: Any,
    recursive: bool = False,
    dry_run: bool = False,
) -> RotationConfig:
    rotation = RotationConfig(
        filesystem=filesystem,
        group=group,
        keep=parse_keep(keep),
        recursive=recursive,
        dry_run=dry_run,
    )
    validate_rotation(rotation)
    return rotation


def validate_rotation(rotation: RotationConfig) -> None:
    validate_filesystem(rotation.filesystem)
    validate_group(rotation.group)
    if isinstance(rotation.keep, bool) or not isinstance(rotation.keep, int):
        raise ConfigError(f"keep must be an integer; got {rotation.keep!r}")
    if rotation.keep < 1:
        raise ConfigError(f"keep must be >= 1; got {rotation.keep}")


def validate_filesystem(filesystem: str) -> None:
    if not filesystem:
        raise ConfigError("filesystem is required")
    if SNAPSHOT_SEPARATOR in filesystem:
        raise ConfigError(f"filesystem must not name a snapshot: {filesystem}")


def validate_group(group: str) -> None:
    if not GROUP_RE.fullmatch(group or ""):
        raise ConfigError(
            f"group must contain only letters and digits; got {group!r}"
        )


def parse_keep(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ConfigError(f"keep must be an integer; got {raw!r}")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not (text.isascii() and text.isdigit()):
            raise ConfigError(f"keep must be a positive integer; got {raw!r}")
        value = int(text)
    else:
        raise ConfigError(f"keep must be an integer; got {raw!r}")
    if value < 1:
        raise ConfigError(f"keep must be >= 1; got {value}")
    return value


def _validate_log_level(value: str) -> None:
    if value.isdigit():
        return
    if value.lower() not in LOG_LEVELS:
        raise ConfigError(
            f"global.log_level must be one of {sorted(LOG_LEVELS)}; got {value}"
        )
