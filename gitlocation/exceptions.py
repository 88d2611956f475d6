"""Exception taxonomy for gitlocation.

Every error that leaves a public operation is a :class:`GitLocationError`
carrying an explicit :class:`ErrorKind`. Raw subprocess failures
(:class:`ProcessError`) stay internal and are translated at each component
boundary.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    RETRIABLE = "retriable"
    FATAL = "fatal"
    LOCAL_IO = "local_io"


class PipelineStage(str, enum.Enum):
    """Stages of the download pipeline, in execution order."""

    RESOLVING = "resolving"
    CLONING = "cloning"
    READING_MANIFEST = "reading_manifest"
    RELOCATING = "relocating"
    POST_PROCESSING = "post_processing"
    DONE = "done"
    FAILED = "failed"


class GitLocationError(Exception):
    """Base exception for all gitlocation errors."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        *,
        stage: PipelineStage | None = None,
        redacted: bool = False,
    ) -> None:
        self.message = message
        self.stage = stage
        self.redacted = redacted
        super().__init__(message)

    @property
    def retriable(self) -> bool:
        return self.kind is ErrorKind.RETRIABLE

    def __str__(self) -> str:
        if self.stage is None:
            return self.message
        return f"[{self.stage.value}] {self.message}"


class RepositoryNotFoundError(GitLocationError):
    """The remote repository does not exist at the resolved locator."""

    kind = ErrorKind.NOT_FOUND


class TransportError(GitLocationError):
    """ls-remote, clone or checkout failed; the caller may retry."""

    kind = ErrorKind.RETRIABLE


class ConfigurationError(GitLocationError):
    """Missing git executable or invalid options. Not retriable."""

    kind = ErrorKind.FATAL


class LocalIOError(GitLocationError):
    """Manifest parse, copy or cleanup failure on the local filesystem."""

    kind = ErrorKind.LOCAL_IO


class ProcessError(Exception):
    """A subprocess exited non-zero, timed out or produced too much output."""

    def __init__(
        self,
        argv: list[str],
        reason: str,
        *,
        returncode: int | None = None,
        stdout: bytes = b"",
        stderr: bytes = b"",
    ) -> None:
        self.argv = argv
        self.reason = reason
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        # argv beyond the subcommand may hold a credential-bearing URL
        super().__init__(f"{' '.join(argv[:2])} failed: {reason}")

    @property
    def detail(self) -> str:
        """Decoded stderr (falling back to the reason) for error messages."""
        text = self.stderr.decode("utf-8", errors="replace").strip()
        return text or self.reason
