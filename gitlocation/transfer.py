"""Scratch directory ownership, tree relocation and manifest reading."""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

import structlog

from gitlocation.core.logging import null_logger
from gitlocation.exceptions import LocalIOError

SCRATCH_PREFIX = "gitlocation-"


class ScratchDir:
    """An exclusively owned temporary directory.

    Usable as an async context manager; leaving the block destroys the
    directory. :meth:`destroy` is idempotent, so an explicit hand-off to
    :func:`relocate` inside the block is fine.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._destroyed = False

    @classmethod
    def create(cls, parent: Path | None = None) -> ScratchDir:
        try:
            if parent is not None:
                parent.mkdir(parents=True, exist_ok=True)
            path = tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=parent)
        except OSError as exc:
            raise LocalIOError(f"cannot create scratch directory: {exc.strerror}") from exc
        return cls(Path(path).resolve())

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    async def destroy(self) -> None:
        """Remove the directory tree; raises :class:`LocalIOError` on failure."""
        if self._destroyed:
            return
        try:
            await asyncio.to_thread(remove_tree, self.path)
        except OSError as exc:
            raise LocalIOError(f"cannot remove scratch directory: {exc.strerror}") from exc
        self._destroyed = True

    async def discard(self) -> bool:
        """Best-effort destroy used while another error is propagating."""
        try:
            await self.destroy()
        except LocalIOError:
            return False
        return True

    async def __aenter__(self) -> ScratchDir:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.destroy()
        else:
            await self.discard()

    def __fspath__(self) -> str:
        return str(self.path)

    def __repr__(self) -> str:
        return f"ScratchDir({str(self.path)!r})"


def remove_tree(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


def _copy_tree(src: Path, dst: Path) -> None:
    """Copy *src* into *dst*, raising on the first error."""
    dst.mkdir(parents=True, exist_ok=True)
    with os.scandir(src) as entries:
        for entry in entries:
            target = dst / entry.name
            if entry.is_symlink():
                if target.is_symlink() or target.exists():
                    target.unlink()
                os.symlink(os.readlink(entry.path), target)
            elif entry.is_dir():
                _copy_tree(Path(entry.path), target)
            else:
                shutil.copy2(entry.path, target)


async def relocate(
    scratch: ScratchDir,
    out_dir: Path,
    *,
    logger: structlog.typing.BindableLogger | None = None,
) -> None:
    """Copy the scratch tree into *out_dir*, then destroy the scratch directory.

    A failed copy removes *out_dir* before the error propagates. The scratch
    directory is destroyed on every path.
    """
    log = logger or null_logger()
    out_dir = Path(out_dir)
    copy_error: BaseException | None = None
    try:
        await asyncio.to_thread(_copy_tree, scratch.path, out_dir)
    except OSError as exc:
        copy_error = exc
        log.error("transfer.copy_failed", out_dir=str(out_dir), error=exc.strerror)
        await asyncio.to_thread(shutil.rmtree, out_dir, True)
        raise LocalIOError(
            f"copying package into {out_dir} failed: {exc.strerror or type(exc).__name__}"
        ) from exc
    finally:
        try:
            await scratch.destroy()
        except LocalIOError:
            if copy_error is None:
                raise
            log.warning("transfer.scratch_cleanup_failed")

    log.debug("transfer.relocated", out_dir=str(out_dir))


async def read_manifest(
    directory: Path,
    filename: str = "package.json",
    *,
    logger: structlog.typing.BindableLogger | None = None,
) -> dict[str, Any]:
    """Load the JSON manifest at the root of *directory*.

    A missing manifest yields ``{}``; unreadable or invalid JSON raises
    :class:`LocalIOError`.
    """
    log = logger or null_logger()
    manifest_path = Path(directory) / filename
    try:
        content = await asyncio.to_thread(manifest_path.read_text, encoding="utf-8")
    except FileNotFoundError:
        log.warning("manifest.missing", filename=filename)
        return {}
    except OSError as exc:
        raise LocalIOError(f"cannot read {filename}: {exc.strerror}") from exc

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        log.error("manifest.invalid", filename=filename, error=str(exc))
        raise LocalIOError(f"invalid JSON in {filename}: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(data, dict):
        raise LocalIOError(f"{filename} must contain a JSON object")
    return data
