"""GitLocation — the package-manager facing git source backend."""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from gitlocation.auth import decode_credentials
from gitlocation.core.config import GitLocationOptions
from gitlocation.core.logging import null_logger
from gitlocation.exceptions import (
    ConfigurationError,
    GitLocationError,
    LocalIOError,
    PipelineStage,
)
from gitlocation.materializer import Materializer
from gitlocation.models import Credential, VersionMap, VersionMeta
from gitlocation.package import PackageProcessor, WarningHandler
from gitlocation.process.gate import ProcessGate
from gitlocation.process.runner import ExecOptions, GitExecutor
from gitlocation.refs import RefLister
from gitlocation.transfer import read_manifest, relocate


class GitLocation:
    """Resolve and download packages hosted in git repositories.

    Example::

        location = GitLocation({"base_url": "https://github.com/"})
        versions = await location.lookup("org/name")
        record = versions["1.2.0"]
        manifest = await location.download(
            "org/name", "1.2.0", record.hash, record.meta, Path("out")
        )
    """

    def __init__(
        self,
        options: GitLocationOptions | Mapping[str, Any],
        *,
        gate: ProcessGate | None = None,
        git: GitExecutor | None = None,
        logger: structlog.typing.BindableLogger | None = None,
        on_warning: WarningHandler | None = None,
    ) -> None:
        if not isinstance(options, GitLocationOptions):
            options = GitLocationOptions.load(options)
        self.options = options

        if options.tmp_dir is not None:
            try:
                options.tmp_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise LocalIOError(
                    f"cannot create working directory {options.tmp_dir}: {exc.strerror}"
                ) from exc

        if logger is None:
            logger = structlog.get_logger("gitlocation") if options.log else null_logger()
        self._log = logger

        if git is None:
            if shutil.which(options.git_binary) is None:
                raise ConfigurationError(f"git executable not found: {options.git_binary!r}")
            git = GitExecutor(
                options.git_binary,
                gate=gate,
                options=ExecOptions(
                    cwd=options.tmp_dir,
                    timeout=options.timeout,
                    max_output_bytes=options.max_output_bytes,
                ),
            )
        self._git = git

        self._refs = RefLister(
            git,
            options.base_url,
            repo_suffix=options.repo_suffix,
            credential=self.credential,
            not_found_markers=options.not_found_markers,
            logger=logger,
        )
        self._materializer = Materializer(
            git,
            options.base_url,
            repo_suffix=options.repo_suffix,
            shallow_clone=options.shallow_clone,
            work_dir=options.tmp_dir,
            logger=logger,
        )
        self._packages = PackageProcessor(
            override_key=options.override_key,
            on_warning=on_warning,
            logger=logger,
        )

    @property
    def credential(self) -> Credential | None:
        return decode_credentials(self.options.auth)

    async def lookup(self, repo_id: str) -> VersionMap | None:
        """Return all versions of *repo_id*, or ``None`` if it does not exist."""
        return await self._refs.lookup(repo_id)

    async def download(
        self,
        repo_id: str,
        version: str,
        hash: str,
        meta: VersionMeta | Mapping[str, Any] | None,
        out_dir: Path,
    ) -> dict[str, Any]:
        """Fetch *version* of *repo_id* into *out_dir* and return its manifest.

        Stages run strictly in order; whichever stage fails is recorded on the
        raised :class:`GitLocationError`. The scratch directory never outlives
        this call.

        The clone selects *version* by ref name; *hash* is only logged. A branch
        head that moves after :meth:`lookup` yields its newer commit.
        """
        stage = PipelineStage.RESOLVING
        log = self._log.bind(repo=repo_id, version=version)
        try:
            meta = _coerce_meta(meta)
            credential = self.credential
            log.info("download.start", hash=hash)

            stage = PipelineStage.CLONING
            scratch = await self._materializer.materialize(repo_id, version, meta, credential)
            async with scratch:
                stage = PipelineStage.READING_MANIFEST
                manifest = await read_manifest(
                    scratch.path, self.options.manifest_file, logger=log
                )

                stage = PipelineStage.RELOCATING
                await relocate(scratch, Path(out_dir), logger=log)

            stage = PipelineStage.POST_PROCESSING
            manifest = self._packages.process_config(manifest, repo_id)
        except GitLocationError as exc:
            exc.stage = exc.stage or stage
            log.error(
                "download.failed",
                stage=PipelineStage.FAILED.value,
                failed_stage=stage.value,
                kind=exc.kind.value,
            )
            raise

        log.info("download.done", stage=PipelineStage.DONE.value)
        return manifest

    def process_package_config(
        self, manifest: Mapping[str, Any], package_id: str
    ) -> dict[str, Any]:
        """Drop untrusted dependencies; see :class:`PackageProcessor`."""
        return self._packages.process_config(dict(manifest), package_id)

    async def process_package(
        self,
        manifest: Mapping[str, Any],
        package_id: str,
        directory: Path,
    ) -> dict[str, Any]:
        return await self._packages.process(dict(manifest), package_id, Path(directory))

    def dispose(self) -> None:
        """Nothing to release: scratch space is cleaned up per call."""


def _coerce_meta(meta: VersionMeta | Mapping[str, Any] | None) -> VersionMeta:
    if meta is None:
        return VersionMeta()
    if isinstance(meta, VersionMeta):
        return meta
    return VersionMeta(v_prefix=bool(meta.get("v_prefix", meta.get("vPrefix", False))))
