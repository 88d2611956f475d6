"""Data models for resolved versions and credentials."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple


@dataclass(frozen=True)
class VersionMeta:
    """Per-version bookkeeping needed to address the remote ref again."""

    v_prefix: bool = False


@dataclass
class VersionRecord:
    """A single resolved version: commit hash plus provenance."""

    hash: str
    stable: bool = True  # False for branch heads, which move between calls
    meta: VersionMeta = field(default_factory=VersionMeta)

    def ref_name(self, version: str) -> str:
        """Rebuild the remote ref name for *version* (re-adding a stripped ``v``)."""
        return f"v{version}" if self.meta.v_prefix else version


VersionMap = dict[str, VersionRecord]


@dataclass(frozen=True)
class Credential:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, password='***')"


class GitVersion(NamedTuple):
    """Installed git version, comparable as a tuple."""

    major: int
    minor: int
    patch: int = 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"
