"""Invocation of the external verification engine.

A process that starts always yields an :class:`EngineResult`, whatever its
exit code: the engine reports a failed verification with a non-zero exit
and still prints a valid result envelope.  Only a process that cannot be
started, or that exceeds the timeout, raises.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from scopegate.exceptions import EngineError, EngineLaunchError, EngineOutputError, EngineTimeoutError
from scopegate.models.verify import VerifyOutput

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def captured_output(self) -> str:
        """stdout on success; stdout followed by stderr otherwise.

        Raises :class:`EngineError` if a failed run printed nothing at all.
        """
        if self.ok:
            return self.stdout
        combined = self.stdout + self.stderr
        if not combined:
            raise EngineError(f"verification engine exited with code {self.returncode} and no output")
        _logger.info("Engine output (with stderr): %s", combined)
        return combined


class EngineRunner(Protocol):
    def __call__(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str],
        timeout: float | None = None,
    ) -> EngineResult:
        ...


def run_engine(
    argv: Sequence[str],
    *,
    env: Mapping[str, str],
    timeout: float | None = None,
) -> EngineResult:
    """Run *argv* to completion and capture both streams."""
    try:
        proc = subprocess.run(
            list(argv),
            env=dict(env),
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise EngineTimeoutError(f"{argv[0]} did not finish within {timeout}s") from exc
    except OSError as exc:
        raise EngineLaunchError(f"failed to start {argv[0]}: {exc}") from exc

    return EngineResult(
        returncode=proc.returncode,
        stdout=proc.stdout.decode("utf-8", errors="replace"),
        stderr=proc.stderr.decode("utf-8", errors="replace"),
    )


def verify_argv(engine_bin: str, config_path: str, name: str, digest: str) -> list[str]:
    return [engine_bin, "verify", "-c", config_path, "-s", name, "--digest", digest]


def engine_env(home_dir: str, base: Mapping[str, str] | None = None) -> dict[str, str]:
    """Inherited environment with ``HOME`` pointed at *home_dir*."""
    env = dict(os.environ if base is None else base)
    env["HOME"] = home_dir
    return env


def parse_output(text: str) -> VerifyOutput:
    """Decode the engine's result envelope.

    Raises :class:`EngineOutputError` carrying the raw text on failure.
    """
    try:
        return VerifyOutput.model_validate_json(text)
    except ValidationError as exc:
        raise EngineOutputError(f"failed to parse engine output: {exc}", raw_output=text) from exc
