"""Remote ref listing and version-map construction."""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from gitlocation.core.logging import null_logger
from gitlocation.exceptions import ProcessError, RepositoryNotFoundError, TransportError
from gitlocation.models import Credential, VersionMap, VersionMeta, VersionRecord
from gitlocation.process.runner import GitExecutor
from gitlocation.url import build_remote_url, redact

HEADS_PREFIX = "refs/heads/"
TAGS_PREFIX = "refs/tags/"
PEELED_SUFFIX = "^{}"

DEFAULT_NOT_FOUND_MARKERS: tuple[str, ...] = (
    "Repository does not exist",
    "Repository not found",
    "not found",
    "does not appear to be a git repository",
)

# Semantic Versioning 2.0.0
SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def is_semver(value: str) -> bool:
    return SEMVER_RE.match(value) is not None


def normalize_version(name: str) -> tuple[str, VersionMeta]:
    """Strip a literal ``v`` from ``v<semver>`` names, remembering it in the meta."""
    if name.startswith("v") and is_semver(name[1:]):
        return name[1:], VersionMeta(v_prefix=True)
    return name, VersionMeta()


def parse_refs(output: str | Iterable[str]) -> VersionMap:
    """Build a version map from ``git ls-remote`` output.

    Each line is ``<hash>\\t<ref>``. Branch heads become unstable records;
    tags stable ones. A peeled ``refs/tags/<name>^{}`` line names the commit an
    annotated tag points to; it wins over the tag-object hash of the same
    name whichever line comes first.
    """
    lines = output.splitlines() if isinstance(output, str) else output
    versions: VersionMap = {}
    peeled: set[str] = set()

    for line in lines:
        line = line.strip()
        if not line:
            continue
        commit, sep, ref = line.partition("\t")
        if not sep or not commit or not ref:
            continue

        if ref.startswith(HEADS_PREFIX):
            name = ref[len(HEADS_PREFIX) :]
            is_peeled = False
            stable = False
        elif ref.startswith(TAGS_PREFIX):
            name = ref[len(TAGS_PREFIX) :]
            is_peeled = name.endswith(PEELED_SUFFIX)
            name = name.removesuffix(PEELED_SUFFIX)
            stable = True
        else:
            continue
        if not name:
            continue

        version, meta = normalize_version(name)
        if stable and not is_peeled and version in peeled:
            continue
        if is_peeled:
            peeled.add(version)
        else:
            peeled.discard(version)
        versions[version] = VersionRecord(hash=commit, stable=stable, meta=meta)

    return versions


def is_not_found(message: str, markers: Iterable[str] = DEFAULT_NOT_FOUND_MARKERS) -> bool:
    lowered = message.lower()
    return any(marker.lower() in lowered for marker in markers)


class RefLister:
    """Resolve the version map of a remote repository via ``git ls-remote``."""

    def __init__(
        self,
        git: GitExecutor,
        base_url: str,
        *,
        repo_suffix: str = ".git",
        credential: Credential | None = None,
        not_found_markers: Iterable[str] = DEFAULT_NOT_FOUND_MARKERS,
        logger: structlog.typing.BindableLogger | None = None,
    ) -> None:
        self._git = git
        self._base_url = base_url
        self._repo_suffix = repo_suffix
        self._credential = credential
        self._not_found_markers = tuple(not_found_markers)
        self._log = logger or null_logger()

    async def list_versions(self, repo_id: str) -> VersionMap:
        """Return the version map, raising :class:`RepositoryNotFoundError`
        when the remote does not exist and :class:`TransportError` on any
        other failure.
        """
        url = build_remote_url(self._base_url, repo_id, self._repo_suffix, self._credential)
        safe_url = redact(url, url)
        self._log.debug("refs.ls_remote", repo=repo_id, url=safe_url)

        try:
            result = await self._git("ls-remote", url, f"{TAGS_PREFIX}*", f"{HEADS_PREFIX}*")
        except ProcessError as exc:
            detail = redact(exc.detail, url)
            if exc.returncode is not None and is_not_found(detail, self._not_found_markers):
                raise RepositoryNotFoundError(
                    f"repository {repo_id} not found at {safe_url}", redacted=True
                ) from None
            self._log.warning("refs.ls_remote_failed", repo=repo_id, reason=exc.reason)
            raise TransportError(
                f"listing refs of {repo_id} from {safe_url} failed: {detail}",
                redacted=True,
            ) from None

        versions = parse_refs(result.text)
        self._log.info("refs.resolved", repo=repo_id, count=len(versions))
        return versions

    async def lookup(self, repo_id: str) -> VersionMap | None:
        """Return the version map, or ``None`` if the repository does not exist."""
        try:
            return await self.list_versions(repo_id)
        except RepositoryNotFoundError:
            self._log.info("refs.not_found", repo=repo_id)
            return None
