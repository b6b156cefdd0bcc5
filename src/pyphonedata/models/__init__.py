"""Data models for pyphonedata."""

from pyphonedata.models.snapshot import Snapshot, version_token

__all__ = [
    "Snapshot",
    "version_token",
]
