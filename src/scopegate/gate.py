"""Per-image verification gate.

For one ``(name, digest)`` request the gate decides whether the image's
repository is in scope and, only if so, runs the verification engine once.
The returned exit code is the verdict: ``0`` verified or skipped, ``1``
failed or errored.  Human-readable lines go to *out* (stdout by default).

Two fail-open rules apply, with different meanings:

* no published snapshot  -> every repository is in scope (verify);
* no engine config file  -> verification is not set up (skip).

A snapshot that exists but is unreadable never fails open.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

from scopegate.config import VerifierConfig
from scopegate.engine import EngineRunner, engine_env, parse_output, run_engine, verify_argv
from scopegate.exceptions import (
    EngineError,
    EngineOutputError,
    ImageReferenceError,
    SnapshotError,
)
from scopegate.models.verify import VerifyOutput
from scopegate.reference import repository_of
from scopegate.snapshot_store import load_snapshot

_logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


class Gate:
    def __init__(
        self,
        config: VerifierConfig,
        *,
        runner: EngineRunner = run_engine,
        out: TextIO | None = None,
    ) -> None:
        self._config = config
        self._runner = runner
        self._out = out

    def _print(self, *parts: object) -> None:
        print(*parts, file=self._out if self._out is not None else sys.stdout)

    def decide(self, repository: str) -> bool:
        """Whether *repository* (``registry/repository`` or a bare name) must be verified."""
        _logger.debug("Checking repository scope for %s in %s", repository, self._config.snapshot_path)
        snapshot = load_snapshot(self._config.snapshot_path)
        if snapshot is None:
            _logger.info("No scope snapshot at %s, verifying everything", self._config.snapshot_path)
            return True
        return snapshot.has_scope(repository)

    def engine_configured(self) -> bool:
        try:
            os.stat(self._config.engine_config)
        except FileNotFoundError:
            return False
        except OSError as exc:
            _logger.debug("Could not stat %s: %s", self._config.engine_config, exc)
        return True

    def verify(self, name: str, digest: str) -> VerifyOutput:
        """Run the engine for *name*/*digest* and decode its envelope."""
        argv = verify_argv(self._config.engine_bin, self._config.engine_config, name, digest)
        _logger.info("Executing command: %s", " ".join(argv))
        result = self._runner(
            argv,
            env=engine_env(self._config.home_dir),
            timeout=self._config.verify_timeout,
        )
        _logger.debug("Engine exited with code %d", result.returncode)
        return parse_output(result.captured_output())

    def run(self, name: str, digest: str) -> int:
        try:
            repository = repository_of(name)
        except ImageReferenceError as exc:
            self._print(f"Error: Invalid name format '{name}': {exc}")
            return EXIT_FAILED

        try:
            in_scope = self.decide(repository)
        except SnapshotError as exc:
            self._print(f"Error checking repository scope: {exc}")
            return EXIT_FAILED
        if not in_scope:
            self._print(f"Repository '{repository}' is not in scope. Skip checking.")
            return EXIT_OK

        if not self.engine_configured():
            self._print(f"Verification engine config {self._config.engine_config} not found. failing open")
            return EXIT_OK

        try:
            output = self.verify(name, digest)
        except EngineOutputError as exc:
            self._print(f"Failed to parse verification output: {exc}")
            self._print("Raw output:", exc.raw_output)
            return EXIT_FAILED
        except EngineError as exc:
            self._print(f"Failed to execute verification: {exc}")
            return EXIT_FAILED

        self._print(output.to_json())
        if output.is_success:
            self._print("verification succeeded")
            return EXIT_OK
        self._print("verification failed")
        return EXIT_FAILED
