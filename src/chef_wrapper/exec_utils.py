"""!
@brief Subprocess execution helpers with sanitised environments.
@details Centralises invocation of :func:`subprocess.run` so lookups such as
``which ruby`` emit uniform telemetry and run without leaked Python virtual
environment variables that would otherwise change what the search path finds.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import constants, logging_ext

_SANITIZE_BLOCKLIST = {
    "PYTHONPATH",
    "PYTHONHOME",
    "PYTHONWARNINGS",
    "VIRTUAL_ENV",
    "PIP_REQUIRE_VIRTUALENV",
    "CONDA_PREFIX",
    "CONDA_DEFAULT_ENV",
    "PYENV_VERSION",
    "POETRY_ACTIVE",
    "__PYVENV_LAUNCHER__",
}


@dataclass
class CommandResult:
    """!
    @brief Outcome information from :func:`run_command`.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    timed_out: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and self.error is None


def _build_result_payload(
    *,
    return_code: int,
    duration: float,
    stdout: str,
    stderr: str,
    error: str | None = None,
    timed_out: bool = False,
) -> dict[str, object]:
    return {
        "rc": return_code,
        "duration_ms": round(duration * 1000, 3),
        "stdout": stdout,
        "stderr": stderr,
        "error": error,
        "timed_out": timed_out,
    }


def sanitize_environment(base_env: Mapping[str, str] | None = None) -> MutableMapping[str, str]:
    """!
    @brief Produce a subprocess environment stripped of virtualenv artefacts.
    @param base_env Source mapping to copy prior to sanitisation; the host
    environment when ``None``.
    @returns Mutable mapping ready for subprocess invocation.
    """

    source = os.environ if base_env is None else base_env
    environment: MutableMapping[str, str] = {str(k): str(v) for k, v in source.items() if v is not None}

    for key in _SANITIZE_BLOCKLIST:
        environment.pop(key, None)

    return environment


def run_command(
    command: Sequence[str],
    *,
    event: str,
    timeout: float | None = constants.DEFAULT_COMMAND_TIMEOUT,
) -> CommandResult:
    """!
    @brief Execute ``command`` and record structured telemetry.
    @details Emits a ``<event>_plan`` record before invocation and one of
    ``<event>_result``, ``<event>_missing``, ``<event>_timeout`` or
    ``<event>_error`` afterwards. Launch failures never raise; they are
    reported through :attr:`CommandResult.error` so lookups can treat them as
    negative results.
    @param command Command sequence to execute.
    @param event Base event identifier recorded in machine logs.
    @param timeout Timeout in seconds, ``None`` to wait indefinitely.
    @returns :class:`CommandResult` describing the observed outcome.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [str(part) for part in command]
    machine_logger.info(
        f"{event}_plan",
        extra={"event": f"{event}_plan", "command": command_list, "timeout": timeout},
    )

    sanitized_env = sanitize_environment()

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            env=sanitized_env,
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        human_logger.info("Command not found: %s", command_list[0])
        machine_logger.warning(
            f"{event}_missing",
            extra={
                "event": f"{event}_missing",
                "command": command_list,
                "result": _build_result_payload(
                    return_code=127, duration=duration, stdout="", stderr="", error=str(exc)
                ),
            },
        )
        return CommandResult(
            command=command_list,
            returncode=127,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        human_logger.warning("Command timed out after %.1fs: %s", duration, command_list[0])
        stdout = exc.stdout if isinstance(exc.stdout, str) else ""
        stderr = exc.stderr if isinstance(exc.stderr, str) else ""
        machine_logger.error(
            f"{event}_timeout",
            extra={
                "event": f"{event}_timeout",
                "command": command_list,
                "result": _build_result_payload(
                    return_code=1,
                    duration=duration,
                    stdout=stdout,
                    stderr=stderr,
                    error="timeout",
                    timed_out=True,
                ),
            },
        )
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout=stdout,
            stderr=stderr,
            duration=duration,
            timed_out=True,
            error="timeout",
        )
    except OSError as exc:
        duration = time.monotonic() - start
        human_logger.warning("Failed to execute %s: %s", command_list[0], exc)
        machine_logger.error(
            f"{event}_error",
            extra={
                "event": f"{event}_error",
                "command": command_list,
                "result": _build_result_payload(
                    return_code=1, duration=duration, stdout="", stderr="", error=str(exc)
                ),
            },
        )
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )

    duration = time.monotonic() - start
    machine_logger.info(
        f"{event}_result",
        extra={
            "event": f"{event}_result",
            "command": command_list,
            "result": _build_result_payload(
                return_code=completed.returncode,
                duration=duration,
                stdout=str(completed.stdout),
                stderr=str(completed.stderr),
            ),
        },
    )

    if completed.returncode != 0:
        human_logger.debug("Command %s exited with %s", command_list[0], completed.returncode)

    return CommandResult(
        command=command_list,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        duration=duration,
    )
