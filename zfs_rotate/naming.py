"""Snapshot naming and parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

SNAPSHOT_SEPARATOR = "@"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"
GROUP_RE = re.compile(r"^[A-Za-z0-9]+$")

_SUFFIX_RE = re.compile(
    r"^(?P<ts>[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2})"
    r"-(?P<group>[A-Za-z0-9]+)$"
)


@dataclass(frozen=True)
class SnapshotName:
    """A snapshot identifier split into its parts.

    ``identifier`` is kept verbatim so the exact string reported by the
    engine is the one handed back for destruction.
    """

    identifier: str
    filesystem: str
    created_at: datetime
    group: str

    def matches(self, filesystem: str, group: str) -> bool:
        return self.filesystem == filesystem and self.group == group


def snapshot_suffix(created_at: datetime, group: str) -> str:
    if created_at.tzinfo is None:
        raise ValueError("created_at must be timezone-aware")
    timestamp = created_at.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)
    return f"{timestamp}-{group}"


def snapshot_identifier(filesystem: str, created_at: datetime, group: str) -> str:
    return f"{filesystem}{SNAPSHOT_SEPARATOR}{snapshot_suffix(created_at, group)}"


def parse_snapshot_name(identifier: str) -> SnapshotName | None:
    filesystem, separator, suffix = identifier.rpartition(SNAPSHOT_SEPARATOR)
    if not separator or not filesystem:
        return None
    match = _SUFFIX_RE.fullmatch(suffix)
    if not match:
        return None
    try:
        created_at = datetime.strptime(
            match.group("ts"), TIMESTAMP_FORMAT
        ).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
    return SnapshotName(
        identifier=identifier,
        filesystem=filesystem,
        created_at=created_at,
        group=match.group("group"),
    )
