"""Create-then-rotate orchestration for a single filesystem."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from zfs_rotate.config import ConfigError, RotationConfig, validate_rotation
from zfs_rotate.engine import EngineError, ZfsEngine
from zfs_rotate.naming import SNAPSHOT_SEPARATOR, snapshot_suffix
from zfs_rotate.rotation import plan_rotation


class RotationStatus(enum.Enum):
    OK = "ok"
    VALIDATION_FAILED = "validation_failed"
    CREATE_FAILED = "create_failed"
    LIST_FAILED = "list_failed"
    DESTROY_FAILED = "destroy_failed"


@dataclass(frozen=True)
class DestroyOutcome:
    identifier: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RotationResult:
    status: RotationStatus
    created: str | None = None
    expired: tuple[str, ...] = ()
    outcomes: tuple[DestroyOutcome, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is RotationStatus.OK

    @property
    def failed(self) -> tuple[DestroyOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class Rotator:
    def __init__(
        self,
        engine: ZfsEngine,
        now: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.engine = engine
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.logger = logger or logging.getLogger(__name__)

    def run(self, rotation: RotationConfig) -> RotationResult:
        error = self._validate(rotation)
        if error is not None:
            return RotationResult(
                status=RotationStatus.VALIDATION_FAILED, error=error
            )

        suffix = snapshot_suffix(self.now(), rotation.group)
        try:
            created = self.engine.create_snapshot(
                rotation.filesystem, suffix, recursive=rotation.recursive
            )
        except EngineError as exc:
            self.logger.error(
                "event=snapshot_create_failed filesystem=%s snapshot=%s error=%s",
                rotation.filesystem,
                suffix,
                exc,
            )
            return RotationResult(
                status=RotationStatus.CREATE_FAILED, error=str(exc)
            )
        self.logger.info(
            "event=snapshot_created snapshot=%s recursive=%s",
            created,
            rotation.recursive,
        )

        try:
            listings = self._list(rotation)
        except EngineError as exc:
            self.logger.error(
                "event=snapshot_list_failed filesystem=%s error=%s",
                rotation.filesystem,
                exc,
            )
            return RotationResult(
                status=RotationStatus.LIST_FAILED, created=created, error=str(exc)
            )

        expired: tuple[str, ...] = ()
        for filesystem, identifiers in listings:
            if self.engine.dry_run:
                planned = f"{filesystem}{SNAPSHOT_SEPARATOR}{suffix}"
                if planned not in identifiers:
                    identifiers.insert(0, planned)
            plan = plan_rotation(
                identifiers, filesystem, rotation.group, rotation.keep
            )
            self.logger.info(
                "event=rotation_planned filesystem=%s group=%s keep=%d "
                "kept=%d expired=%d",
                filesystem,
                rotation.group,
                rotation.keep,
                len(plan.keep),
                len(plan.expire),
            )
            expired += tuple(plan.expired_identifiers)

        # Every descendant is planned on its own, so destroys never cascade.
        outcomes = tuple(self._destroy(identifier) for identifier in expired)
        failures = [outcome for outcome in outcomes if not outcome.ok]
        if failures:
            self.logger.error(
                "event=rotation_incomplete filesystem=%s group=%s failed=%d "
                "snapshots=%s",
                rotation.filesystem,
                rotation.group,
                len(failures),
                ",".join(outcome.identifier for outcome in failures),
            )
            return RotationResult(
                status=RotationStatus.DESTROY_FAILED,
                created=created,
                expired=expired,
                outcomes=outcomes,
                error=f"{len(failures)} of {len(outcomes)} destroys failed",
            )
        self.logger.info(
            "event=rotation_complete filesystem=%s group=%s destroyed=%d",
            rotation.filesystem,
            rotation.group,
            len(outcomes),
        )
        return RotationResult(
            status=RotationStatus.OK,
            created=created,
            expired=expired,
            outcomes=outcomes,
        )

    def _validate(self, rotation: RotationConfig) -> str | None:
        try:
            validate_rotation(rotation)
        except ConfigError as exc:
            self.logger.error("event=rotation_invalid error=%s", exc)
            return str(exc)
        try:
            exists = self.engine.filesystem_exists(rotation.filesystem)
        except EngineError as exc:
            self.logger.error(
                "event=filesystem_check_failed filesystem=%s error=%s",
                rotation.filesystem,
                exc,
            )
            return str(exc)
        if not exists:
            self.logger.error(
                "event=filesystem_not_found filesystem=%s", rotation.filesystem
            )
            return f"not a filesystem: {rotation.filesystem}"
        return None

    def _list(self, rotation: RotationConfig) -> list[tuple[str, list[str]]]:
        """Read every covered filesystem's own snapshots before destroying any."""
        filesystems = self.engine.list_filesystems(
            rotation.filesystem, recursive=rotation.recursive
        )
        return [
            (filesystem, self.engine.list_snapshots(filesystem))
            for filesystem in filesystems
        ]

    def _destroy(self, identifier: str) -> DestroyOutcome:
        try:
            self.engine.destroy_snapshot(identifier)
        except EngineError as exc:
            self.logger.error(
                "event=snapshot_destroy_failed snapshot=%s error=%s",
                identifier,
                exc,
            )
            return DestroyOutcome(identifier=identifier, error=str(exc))
        self.logger.info("event=snapshot_destroyed snapshot=%s", identifier)
        return DestroyOutcome(identifier=identifier)
