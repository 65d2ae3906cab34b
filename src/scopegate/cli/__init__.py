"""Command-line entry points: ``scopegate-monitor`` and ``scopegate-verifier``."""
