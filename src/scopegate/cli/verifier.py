"""Verifier process: one scope-gated image verification per invocation.

Flag names follow containerd's ``bindir`` image verifier contract::

    scopegate-verifier -name registry.io/app:1.0 -digest sha256:... [-stdin-media-type T]

Exit code ``0`` admits the image, ``1`` rejects it.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import NoReturn

from scopegate.config import VerifierConfig
from scopegate.exceptions import ScopeGateConfigError
from scopegate.gate import EXIT_FAILED, Gate

_logger = logging.getLogger("scopegate.verifier")


class _ArgumentParser(argparse.ArgumentParser):
    """Reports usage errors on stdout with exit code 1."""

    def error(self, message: str) -> NoReturn:
        print(f"Error: {message}")
        self.print_usage(sys.stdout)
        sys.exit(EXIT_FAILED)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="scopegate-verifier", allow_abbrev=False)
    parser.add_argument("-name", "--name", dest="name", default="", help="Container image name (required)")
    parser.add_argument("-digest", "--digest", dest="digest", default="", help="Container image digest (required)")
    parser.add_argument(
        "-stdin-media-type",
        "--stdin-media-type",
        dest="stdin_media_type",
        default="",
        help="Stdin media type",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")
    return parser


def _configure_logging(verbose: bool, log_file: str | None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as exc:
            print(f"Warning: cannot open log file {log_file}: {exc}", file=sys.stderr)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    for flag in ("name", "digest"):
        if not getattr(args, flag):
            print(f"Error: -{flag} flag is required")
            parser.print_usage(sys.stdout)
            return EXIT_FAILED

    try:
        config = VerifierConfig.from_env()
    except ScopeGateConfigError as exc:
        print(f"Error: {exc}")
        return EXIT_FAILED

    _configure_logging(args.verbose, config.log_file)
    if args.stdin_media_type:
        _logger.debug("stdin media type %s ignored", args.stdin_media_type)
    return Gate(config).run(args.name, args.digest)


if __name__ == "__main__":
    sys.exit(main())
