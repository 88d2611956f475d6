"""Subprocess execution with wall-clock timeout and output bounds."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from gitlocation.exceptions import ConfigurationError, LocalIOError, ProcessError
from gitlocation.process.gate import ProcessGate, get_default_gate

_READ_CHUNK = 64 * 1024


@dataclass(frozen=True)
class ExecOptions:
    """Options applied to every external process invocation.

    *timeout* is in seconds; *max_output_bytes* bounds stdout and stderr
    separately. ``None`` disables either bound.
    """

    cwd: Path | None = None
    timeout: float | None = 120.0
    max_output_bytes: int | None = None
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessResult:
    stdout: bytes
    stderr: bytes
    returncode: int

    @property
    def text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")


class _OutputLimitExceeded(Exception):
    pass


async def _pump(stream: asyncio.StreamReader, sink: bytearray, limit: int | None) -> None:
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        sink.extend(chunk)
        if limit is not None and len(sink) > limit:
            raise _OutputLimitExceeded


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def run_process(
    argv: Sequence[str],
    options: ExecOptions | None = None,
    *,
    cwd: Path | None = None,
) -> ProcessResult:
    """Run *argv* and return its captured output.

    Raises :class:`ProcessError` on non-zero exit, timeout or output
    overflow (the process is killed in the last two cases) and
    :class:`ConfigurationError` when the executable does not exist
    (:class:`LocalIOError` when the working directory is missing instead).
    """
    options = options or ExecOptions()
    argv = list(argv)
    env = {**os.environ, **options.env} if options.env else None
    workdir = cwd or options.cwd

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(workdir) if workdir is not None else None,
            env=env,
        )
    except FileNotFoundError as exc:
        if workdir is not None and not Path(workdir).is_dir():
            raise LocalIOError(f"working directory does not exist: {workdir}") from exc
        raise ConfigurationError(f"executable not found: {argv[0]}") from exc

    stdout = bytearray()
    stderr = bytearray()
    pumps = [
        asyncio.create_task(_pump(proc.stdout, stdout, options.max_output_bytes)),
        asyncio.create_task(_pump(proc.stderr, stderr, options.max_output_bytes)),
    ]

    try:
        await asyncio.wait_for(asyncio.gather(*pumps), timeout=options.timeout)
        returncode = await proc.wait()
    except asyncio.TimeoutError:
        await _kill(proc)
        raise ProcessError(
            argv,
            f"timed out after {options.timeout}s",
            stdout=bytes(stdout),
            stderr=bytes(stderr),
        ) from None
    except _OutputLimitExceeded:
        for task in pumps:
            task.cancel()
        await _kill(proc)
        raise ProcessError(
            argv,
            f"output limit of {options.max_output_bytes} bytes exceeded",
            stdout=bytes(stdout),
            stderr=bytes(stderr),
        ) from None
    except BaseException:
        for task in pumps:
            task.cancel()
        await _kill(proc)
        raise

    if returncode != 0:
        raise ProcessError(
            argv,
            f"exit status {returncode}",
            returncode=returncode,
            stdout=bytes(stdout),
            stderr=bytes(stderr),
        )
    return ProcessResult(stdout=bytes(stdout), stderr=bytes(stderr), returncode=returncode)


class GitExecutor:
    """Run git subcommands through a :class:`ProcessGate`.

    Example::

        git = GitExecutor(options=ExecOptions(timeout=30))
        result = await git("ls-remote", url, "refs/tags/*")
    """

    def __init__(
        self,
        git_binary: str = "git",
        *,
        gate: ProcessGate | None = None,
        options: ExecOptions | None = None,
    ) -> None:
        self.git_binary = git_binary
        self.gate = gate or get_default_gate()
        base = options or ExecOptions()
        # never block on an interactive credential prompt
        env = {"GIT_TERMINAL_PROMPT": "0", **base.env}
        self.options = ExecOptions(
            cwd=base.cwd,
            timeout=base.timeout,
            max_output_bytes=base.max_output_bytes,
            env=env,
        )

    async def __call__(self, *args: str, cwd: Path | None = None) -> ProcessResult:
        argv = [self.git_binary, *args]
        return await self.gate.submit(lambda: run_process(argv, self.options, cwd=cwd))
