"""External process execution: admission gate and bounded runner."""

from gitlocation.process.gate import ProcessGate, get_default_gate
from gitlocation.process.runner import ExecOptions, GitExecutor, ProcessResult, run_process

__all__ = [
    "ExecOptions",
    "GitExecutor",
    "ProcessGate",
    "ProcessResult",
    "get_default_gate",
    "run_process",
]
