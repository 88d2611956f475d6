"""Clone an exact revision into a scratch directory."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

import structlog

from gitlocation.core.logging import null_logger
from gitlocation.exceptions import LocalIOError, ProcessError, TransportError
from gitlocation.models import Credential, GitVersion, VersionMeta
from gitlocation.process.runner import GitExecutor
from gitlocation.transfer import ScratchDir, remove_tree
from gitlocation.url import build_remote_url, redact

# First git release supporting ``clone --single-branch``
LEGACY_THRESHOLD = GitVersion(1, 7, 10)

_GIT_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")

GIT_METADATA_DIR = ".git"


def parse_git_version(output: str) -> GitVersion | None:
    """Parse ``git --version`` output, e.g. ``git version 2.39.3 (Apple Git-145)``."""
    match = _GIT_VERSION_RE.search(output)
    if match is None:
        return None
    major, minor, patch = match.groups()
    return GitVersion(int(major), int(minor), int(patch or 0))


def is_legacy(version: GitVersion | None) -> bool:
    return version is None or version < LEGACY_THRESHOLD


def clone_commands(
    url: str,
    ref: str,
    target: Path,
    *,
    legacy: bool,
    shallow: bool = True,
) -> list[list[str]]:
    """Return the git argument lists that check *ref* out into *target*.

    Modern git selects the branch or tag at clone time; legacy git clones the
    default branch with full history and checks *ref* out afterwards.
    """
    if legacy:
        return [
            ["clone", "--", url, str(target)],
            ["checkout", ref],
        ]
    args = ["clone", "--branch", ref, "--single-branch"]
    if shallow:
        args += ["--depth", "1"]
    return [args + ["--", url, str(target)]]


class Materializer:
    """Clone one revision of a repository and strip its git metadata."""

    def __init__(
        self,
        git: GitExecutor,
        base_url: str,
        *,
        repo_suffix: str = ".git",
        shallow_clone: bool = True,
        work_dir: Path | None = None,
        logger: structlog.typing.BindableLogger | None = None,
    ) -> None:
        self._git = git
        self._base_url = base_url
        self._repo_suffix = repo_suffix
        self._shallow_clone = shallow_clone
        self._work_dir = work_dir
        self._log = logger or null_logger()

    async def git_version(self) -> GitVersion | None:
        try:
            result = await self._git("--version")
        except ProcessError as exc:
            self._log.warning("clone.git_version_failed", reason=exc.reason)
            return None
        version = parse_git_version(result.text)
        if version is None:
            self._log.warning("clone.git_version_unparsed", output=result.text.strip()[:80])
        return version

    async def materialize(
        self,
        repo_id: str,
        version: str,
        meta: VersionMeta | None = None,
        credential: Credential | None = None,
    ) -> ScratchDir:
        """Clone *version* of *repo_id* into a fresh :class:`ScratchDir`.

        The caller owns the returned directory. On failure nothing is left
        behind: :class:`TransportError` for clone/checkout problems,
        :class:`LocalIOError` when the metadata directory cannot be removed.
        """
        meta = meta or VersionMeta()
        ref = f"v{version}" if meta.v_prefix else version
        url = build_remote_url(self._base_url, repo_id, self._repo_suffix, credential)
        safe_url = redact(url, url)

        git_version = await self.git_version()
        legacy = is_legacy(git_version)
        self._log.info(
            "clone.start",
            repo=repo_id,
            ref=ref,
            url=safe_url,
            git_version=str(git_version) if git_version else None,
            mode="legacy" if legacy else "modern",
        )

        scratch = ScratchDir.create(self._work_dir)
        commands = clone_commands(
            url, ref, scratch.path, legacy=legacy, shallow=self._shallow_clone
        )
        try:
            for args in commands:
                # every step after the clone runs inside the checkout
                cwd = scratch.path if args[0] != "clone" else None
                await self._git(*args, cwd=cwd)
        except ProcessError as exc:
            await self._discard(scratch)
            detail = redact(exc.detail, url).replace(str(scratch.path), "<scratch>")
            self._log.warning("clone.failed", repo=repo_id, ref=ref, reason=exc.reason)
            raise TransportError(
                f"cloning {repo_id}@{ref} from {safe_url} failed: {detail}",
                redacted=True,
            ) from None
        except BaseException:
            await self._discard(scratch)
            raise

        try:
            await asyncio.to_thread(remove_tree, scratch.path / GIT_METADATA_DIR)
        except OSError as exc:
            await self._discard(scratch)
            raise LocalIOError(
                f"removing git metadata from {repo_id}@{ref} failed: {exc.strerror}"
            ) from exc

        self._log.debug("clone.done", repo=repo_id, ref=ref)
        return scratch

    async def _discard(self, scratch: ScratchDir) -> None:
        if not await scratch.discard():
            self._log.error("clone.scratch_cleanup_failed")
