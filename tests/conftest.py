"""Shared pytest fixtures for gitlocation tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from gitlocation.exceptions import ProcessError
from gitlocation.process.runner import ProcessResult

# Tree produced by every fake clone, regardless of mode
FAKE_TREE = {
    "package.json": '{"name": "name", "version": "1.2.0"}',
    "index.js": "module.exports = 42;\n",
    "lib/util.js": "exports.util = true;\n",
}


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


class FakeGit:
    """Stand-in for :class:`GitExecutor` that records calls.

    ``handlers`` maps a git subcommand to a callable ``(args, cwd) -> str``
    returning stdout, or raising :class:`ProcessError`.
    """

    def __init__(self, version: str = "git version 2.39.2") -> None:
        self.calls: list[tuple[tuple[str, ...], Path | None]] = []
        self.handlers: dict[str, Callable[[tuple[str, ...], Path | None], str]] = {
            "--version": lambda args, cwd: version + "\n",
            "clone": self._clone,
            "checkout": lambda args, cwd: "",
        }
        self.tree = dict(FAKE_TREE)

    async def __call__(self, *args: str, cwd: Path | None = None) -> ProcessResult:
        self.calls.append((args, cwd))
        handler = self.handlers[args[0]]
        stdout = handler(args, cwd)
        return ProcessResult(stdout=stdout.encode(), stderr=b"", returncode=0)

    def commands(self, name: str) -> list[tuple[str, ...]]:
        return [args for args, _ in self.calls if args[0] == name]

    def _clone(self, args: tuple[str, ...], cwd: Path | None) -> str:
        target = Path(args[-1])
        (target / ".git" / "refs").mkdir(parents=True, exist_ok=True)
        (target / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        for rel, content in self.tree.items():
            path = target / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return ""


def fail(stderr: str, returncode: int = 128) -> Callable[[tuple[str, ...], Path | None], str]:
    """Handler that makes a fake git call exit with *stderr*."""

    def handler(args: tuple[str, ...], cwd: Path | None) -> str:
        raise ProcessError(
            ["git", *args],
            f"exit status {returncode}",
            returncode=returncode,
            stderr=stderr.encode(),
        )

    return handler


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def scratch_parent(tmp_path):
    parent = tmp_path / "scratch"
    parent.mkdir()
    return parent


def leftover_scratch(parent: Path) -> list[Path]:
    return sorted(parent.glob("gitlocation-*"))
