"""Subprocess helpers for running external commands."""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    text: bool = True
    timeout_seconds: float | None = None


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result.

    ``stdout`` carries decoded output for text requests; ``stdout_bytes``
    carries raw output for binary requests.
    """

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    stdout_bytes: bytes = b""
    timed_out: bool = False


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult | None: ...


def _decode(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return ""


class SubprocessCommandRunner:
    """Default command-runner adapter backed by subprocess."""

    def run(self, request: CommandRequest) -> CommandResult | None:
        run_kwargs: dict[str, object] = {
            "cwd": request.cwd,
            "env": request.env,
            "check": False,
            "capture_output": True,
            "stdin": subprocess.DEVNULL,
        }
        if request.text:
            run_kwargs["text"] = True
            run_kwargs["encoding"] = "utf-8"
            run_kwargs["errors"] = "replace"
        if request.timeout_seconds is not None:
            run_kwargs["timeout"] = request.timeout_seconds
        try:
            completed = subprocess.run(list(request.argv), **run_kwargs)
        except FileNotFoundError:
            return None
        except subprocess.TimeoutExpired as exc:
            return CommandResult(
                argv=request.argv,
                returncode=124,
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr),
                timed_out=True,
            )

        if request.text:
            return CommandResult(
                argv=request.argv,
                returncode=completed.returncode,
                stdout=_decode(completed.stdout),
                stderr=_decode(completed.stderr),
            )
        raw = completed.stdout if isinstance(completed.stdout, bytes) else b""
        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout="",
            stderr=_decode(completed.stderr),
            stdout_bytes=raw,
        )


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Execute a typed command request with the given runner."""
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)


def command_failure_detail(request: CommandRequest, result: CommandResult) -> str:
    """Describe a failed command with its trimmed output."""
    output = (result.stderr or result.stdout or "").strip()
    command_text = " ".join(request.argv)
    if output:
        return f"command failed: {command_text}\n{output}"
    return f"command failed: {command_text}"
