"""zfs(8) command wrappers."""

from __future__ import annotations

import logging
import os
import subprocess

from zfs_rotate.naming import SNAPSHOT_SEPARATOR

MISSING_DATASET = "dataset does not exist"


class EngineError(RuntimeError):
    """Raised when a zfs command fails."""

    def __init__(
        self, args: list[str], returncode: int | None = None, stderr: str = ""
    ) -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"command failed: {' '.join(self.command)}"
        if returncode is not None:
            message += f" (exit {returncode})"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class CommandRunner:
    """Command runner abstraction for testability."""

    def run(self, args: list[str]) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class ShellRunner(CommandRunner):
    def run(self, args: list[str]) -> str:
        env = os.environ.copy()
        env["PATH"] = ensure_sbin_on_path(env.get("PATH", ""))
        try:
            completed = subprocess.run(
                args,
                check=True,
                text=True,
                capture_output=True,
                env=env,
            )
        except subprocess.CalledProcessError as exc:
            raise EngineError(args, exc.returncode, exc.stderr or "") from exc
        except OSError as exc:
            raise EngineError(args, stderr=str(exc)) from exc
        return completed.stdout


class ZfsEngine:
    def __init__(
        self,
        runner: CommandRunner,
        zfs_command: str = "zfs",
        dry_run: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self.runner = runner
        self.zfs_command = zfs_command
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger(__name__)

    def filesystem_exists(self, filesystem: str) -> bool:
        try:
            output = self._zfs(
                ["get", "-H", "-p", "-o", "value", "type", filesystem]
            )
        except EngineError as exc:
            if MISSING_DATASET not in exc.stderr:
                raise
            self.logger.debug(
                "event=engine_filesystem_missing filesystem=%s error=%s",
                filesystem,
                exc,
            )
            return False
        return output.strip() == "filesystem"

    def list_filesystems(
        self, filesystem: str, recursive: bool = False
    ) -> list[str]:
        """Return ``filesystem`` and, when recursive, every descendant."""
        if not recursive:
            return [filesystem]
        output = self._zfs(
            ["list", "-H", "-t", "filesystem", "-o", "name", "-r", filesystem]
        )
        return _lines(output)

    def create_snapshot(
        self, filesystem: str, suffix: str, recursive: bool = False
    ) -> str:
        identifier = f"{filesystem}{SNAPSHOT_SEPARATOR}{suffix}"
        args = ["snapshot"]
        if recursive:
            args.append("-r")
        args.append(identifier)
        self._mutate(args)
        return identifier

    def list_snapshots(
        self, filesystem: str, recursive: bool = False
    ) -> list[str]:
        """Return each filesystem's own snapshots, newest name first.

        With ``recursive`` the listing covers every descendant too, one
        filesystem after another in ``zfs list -r`` order.
        """
        if recursive:
            names: list[str] = []
            for name in self.list_filesystems(filesystem, recursive=True):
                names.extend(self.list_snapshots(name))
            return names
        output = self._zfs(
            [
                "list",
                "-H",
                "-t",
                "snapshot",
                "-o",
                "name",
                "-S",
                "name",
                "-d",
                "1",
                filesystem,
            ]
        )
        return _lines(output)

    def destroy_snapshot(self, identifier: str, recursive: bool = False) -> None:
        if SNAPSHOT_SEPARATOR not in identifier:
            raise EngineError(
                [self.zfs_command, "destroy", identifier],
                stderr="refusing to destroy a non-snapshot",
            )
        args = ["destroy"]
        if recursive:
            args.append("-r")
        args.append(identifier)
        self._mutate(args)

    def _mutate(self, args: list[str]) -> None:
        if self.dry_run:
            self.logger.info(
                "event=engine_dry_run command=%s",
                " ".join([self.zfs_command, *args]),
            )
            return
        self._zfs(args)

    def _zfs(self, args: list[str]) -> str:
        return self.runner.run([self.zfs_command, *args])


def _lines(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def ensure_sbin_on_path(path: str) -> str:
    parts = [entry for entry in path.split(os.pathsep) if entry]
    for entry in ("/usr/sbin", "/sbin"):
        if entry not in parts:
            parts.append(entry)
    return os.pathsep.join(parts)
