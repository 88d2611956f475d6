"""Manifest post-processing for packages fetched from git."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from gitlocation.core.logging import null_logger

DEFAULT_OVERRIDE_KEY = "jspm"

# Manifest fields stripped from untrusted git packages as one group
DEPENDENCY_FIELDS: tuple[str, ...] = ("dependencies", "peerDependencies", "optionalDependencies")

WarningHandler = Callable[[str], None]


def _has_override_dependencies(manifest: dict[str, Any], override_key: str) -> bool:
    override = manifest.get(override_key)
    if not isinstance(override, dict):
        return False
    return any(f in override for f in DEPENDENCY_FIELDS) or bool(override.get("registry"))


def dependency_warning(package_id: str) -> str:
    return (
        f"Dependencies of `{package_id}` were not installed: it is a git package "
        "without a `registry` property, so its declared dependencies cannot be "
        "trusted to resolve against the expected registry. Add a `registry` "
        "property (or an override block) to install them."
    )


class PackageProcessor:
    """Normalize a fetched package manifest.

    Dependency fields (:data:`DEPENDENCY_FIELDS`) declared by an arbitrary
    git tree are dropped unless the manifest names a registry or carries an
    override block with its own dependency fields or registry.
    The drop is reported as a warning, never as an error.
    """

    def __init__(
        self,
        *,
        override_key: str = DEFAULT_OVERRIDE_KEY,
        on_warning: WarningHandler | None = None,
        logger: structlog.typing.BindableLogger | None = None,
    ) -> None:
        self.override_key = override_key
        self._on_warning = on_warning
        self._log = logger or null_logger()

    def process_config(self, manifest: dict[str, Any], package_id: str) -> dict[str, Any]:
        """Return a copy of *manifest* with untrusted dependency fields removed."""
        result = copy.deepcopy(manifest)
        declared = [f for f in DEPENDENCY_FIELDS if result.get(f)]
        if (
            declared
            and not result.get("registry")
            and not _has_override_dependencies(result, self.override_key)
        ):
            for field in DEPENDENCY_FIELDS:
                result.pop(field, None)
            self._warn(dependency_warning(package_id), package_id)
        return result

    async def process(
        self,
        manifest: dict[str, Any],
        package_id: str,
        directory: Path,
    ) -> dict[str, Any]:
        """Fill in a missing ``main`` entry from the downloaded tree."""
        result = copy.deepcopy(manifest)
        override = result.get(self.override_key)
        if result.get("main") or (isinstance(override, dict) and override.get("main")):
            return result

        basename = package_id.rstrip("/").rsplit("/", 1)[-1]
        for candidate in ("index", basename):
            if not candidate:
                continue
            if await asyncio.to_thread(Path(directory, f"{candidate}.js").is_file):
                result["main"] = candidate
                self._log.debug("package.main_fallback", package=package_id, main=candidate)
                break
        return result

    def _warn(self, message: str, package_id: str) -> None:
        self._log.warning("package.dependencies_skipped", package=package_id)
        if self._on_warning is None:
            return
        try:
            self._on_warning(message)
        except Exception:
            # warnings are a side channel and must not break the download
            self._log.exception("package.warning_handler_failed")
