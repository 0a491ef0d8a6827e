"""Retention selection for one filesystem and group."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from zfs_rotate.naming import SnapshotName, parse_snapshot_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotationPlan:
    """Matching snapshots split by rank, both halves newest first."""

    keep: tuple[SnapshotName, ...]
    expire: tuple[SnapshotName, ...]

    @property
    def expired_identifiers(self) -> list[str]:
        return [snap.identifier for snap in self.expire]


def plan_rotation(
    identifiers: Iterable[str], filesystem: str, group: str, keep: int
) -> RotationPlan:
    """Rank the snapshots of ``group`` on ``filesystem`` and split at ``keep``.

    Names that belong to another filesystem, another group or a foreign
    naming scheme are ignored entirely: they neither count toward ``keep``
    nor get selected.
    """
    if keep < 1:
        raise ValueError("keep must be >= 1")
    matches = _matching(identifiers, filesystem, group)
    ordered = sorted(matches, key=lambda snap: snap.created_at, reverse=True)
    if ordered != matches:
        logger.warning(
            "event=rotation_order_corrected filesystem=%s group=%s count=%d",
            filesystem,
            group,
            len(matches),
        )
    return RotationPlan(keep=tuple(ordered[:keep]), expire=tuple(ordered[keep:]))


def select_expired(
    identifiers: Iterable[str], filesystem: str, group: str, keep: int
) -> list[str]:
    return plan_rotation(identifiers, filesystem, group, keep).expired_identifiers


def _matching(
    identifiers: Iterable[str], filesystem: str, group: str
) -> list[SnapshotName]:
    matches: list[SnapshotName] = []
    for identifier in identifiers:
        parsed = parse_snapshot_name(identifier)
        if parsed is None or not parsed.matches(filesystem, group):
            continue
        matches.append(parsed)
    return matches
