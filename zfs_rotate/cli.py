"""CLI entrypoint and logging setup."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from zfs_rotate.config import (
    Config,
    ConfigError,
    build_rotation_config,
    load_config,
)
from zfs_rotate.engine import ShellRunner, ZfsEngine
from zfs_rotate.rotator import Rotator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="zfs-rotate",
        description=(
            "Snapshot a ZFS filesystem and destroy the oldest snapshots of "
            "the same group beyond KEEP."
        ),
    )
    parser.add_argument("filesystem", help="filesystem to snapshot")
    parser.add_argument(
        "group", help="snapshot group label, letters and digits only"
    )
    parser.add_argument(
        "keep", help="number of most recent snapshots of the group to keep"
    )
    parser.add_argument("--config", help="path to config.toml")
    parser.add_argument("--log-level", help="override log level")
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="snapshot and destroy descendant filesystems too",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="log zfs snapshot/destroy commands instead of running them",
    )

    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    if not argv:
        parser.print_help()
        raise SystemExit(EXIT_USAGE)
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    numeric = _parse_level(level)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main(argv: Iterable[str] | None = None) -> int:
    try:
        args = parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    try:
        config = _load_config(args)
        setup_logging(args.log_level or config.global_cfg.log_level)
    except ConfigError as exc:
        print(f"config error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    logger = logging.getLogger(__name__)
    try:
        rotation = build_rotation_config(
            args.filesystem,
            args.group,
            args.keep,
            recursive=args.recursive or config.defaults.recursive,
            dry_run=args.dry_run,
        )
    except ConfigError as exc:
        logger.error("event=rotation_invalid error=%s", exc)
        return EXIT_FAILURE

    logger.info(
        "event=command_start filesystem=%s group=%s keep=%d recursive=%s dry_run=%s",
        rotation.filesystem,
        rotation.group,
        rotation.keep,
        rotation.recursive,
        rotation.dry_run,
    )
    engine = ZfsEngine(
        ShellRunner(),
        zfs_command=config.global_cfg.zfs_command,
        dry_run=rotation.dry_run,
    )
    result = Rotator(engine).run(rotation)
    logger.info(
        "event=command_complete status=%s created=%s expired=%d",
        result.status.value,
        result.created,
        len(result.expired),
    )
    return result.exit_code


def _load_config(args: argparse.Namespace) -> Config:
    if args.config:
        return load_config(Path(args.config).expanduser())
    return Config.default()


def _parse_level(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        pass
    normalized = value.lower()
    mapping = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }
    if normalized not in mapping:
        raise ConfigError(f"invalid log level: {value}")
    return mapping[normalized]
