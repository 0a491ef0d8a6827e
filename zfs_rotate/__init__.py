"""ZFS snapshot creation and per-group rotation."""

__version__ = "0.1.0"
