"""Tests for run_process and GitExecutor, using the running interpreter as a child."""

import sys
from unittest.mock import AsyncMock, patch

import pytest

from gitlocation.exceptions import ConfigurationError, LocalIOError, ProcessError
from gitlocation.process.gate import ProcessGate
from gitlocation.process.runner import ExecOptions, GitExecutor, ProcessResult, run_process

PY = sys.executable


class TestRunProcess:
    @pytest.mark.anyio
    async def test_captures_output(self):
        result = await run_process(
            [PY, "-c", "import sys; print('out'); print('err', file=sys.stderr)"]
        )
        assert result.returncode == 0
        assert result.text.strip() == "out"
        assert result.stderr.strip() == b"err"

    @pytest.mark.anyio
    async def test_non_zero_exit(self):
        with pytest.raises(ProcessError) as exc_info:
            await run_process(
                [PY, "-c", "import sys; sys.stderr.write('fatal: nope'); sys.exit(3)"]
            )
        err = exc_info.value
        assert err.returncode == 3
        assert err.detail == "fatal: nope"
        assert "exit status 3" in str(err)

    @pytest.mark.anyio
    async def test_timeout_kills(self):
        with pytest.raises(ProcessError) as exc_info:
            await run_process(
                [PY, "-c", "import time; time.sleep(30)"],
                ExecOptions(timeout=0.5),
            )
        assert exc_info.value.returncode is None
        assert "timed out" in exc_info.value.reason

    @pytest.mark.anyio
    async def test_output_limit(self):
        with pytest.raises(ProcessError) as exc_info:
            await run_process(
                [PY, "-c", "import sys; sys.stdout.write('x' * 200000); sys.stdout.flush()"],
                ExecOptions(max_output_bytes=1000),
            )
        assert exc_info.value.returncode is None
        assert "output limit" in exc_info.value.reason

    @pytest.mark.anyio
    async def test_missing_executable(self):
        with pytest.raises(ConfigurationError):
            await run_process(["definitely-not-a-real-binary-xyz"])

    @pytest.mark.anyio
    async def test_missing_cwd_is_local_io_error(self, tmp_path):
        with pytest.raises(LocalIOError, match="working directory does not exist"):
            await run_process([PY, "-c", "pass"], cwd=tmp_path / "nope")

    @pytest.mark.anyio
    async def test_cwd_and_env(self, tmp_path):
        result = await run_process(
            [PY, "-c", "import os; print(os.getcwd()); print(os.environ['GL_TEST'])"],
            ExecOptions(env={"GL_TEST": "yes"}),
            cwd=tmp_path,
        )
        cwd, value = result.text.splitlines()
        assert cwd == str(tmp_path.resolve()) or cwd == str(tmp_path)
        assert value == "yes"

    def test_error_message_omits_arguments(self):
        err = ProcessError(["git", "clone", "https://u:p@h/r.git"], "exit status 128")
        assert "u:p" not in str(err)
        assert str(err) == "git clone failed: exit status 128"


class TestGitExecutor:
    @pytest.mark.anyio
    async def test_runs_through_gate_with_prompt_disabled(self):
        gate = ProcessGate()
        git = GitExecutor("git", gate=gate, options=ExecOptions(timeout=5))
        fake = AsyncMock(return_value=ProcessResult(b"", b"", 0))

        with patch("gitlocation.process.runner.run_process", fake), patch.object(
            gate, "submit", wraps=gate.submit
        ) as submit:
            await git("ls-remote", "url")

        submit.assert_called_once()
        argv, options = fake.call_args.args
        assert argv == ["git", "ls-remote", "url"]
        assert options.env["GIT_TERMINAL_PROMPT"] == "0"
        assert options.timeout == 5
        assert fake.call_args.kwargs == {"cwd": None}

    def test_caller_env_preserved(self):
        git = GitExecutor(options=ExecOptions(env={"GIT_SSH_COMMAND": "ssh -o Batch=yes"}))
        assert git.options.env == {
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_SSH_COMMAND": "ssh -o Batch=yes",
        }
