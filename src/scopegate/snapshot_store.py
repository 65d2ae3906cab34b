"""Atomic publication point for the current :class:`ScopeSnapshot`.

One writer (the monitor) and any number of readers share a single file.
Publishing writes ``<file>.tmp`` next to the target and renames it over the
target, so a reader opening the well-known path sees either the previous
complete snapshot or the new one, never a partial write.  No locks are used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from scopegate._constants import TEMP_SUFFIX
from scopegate.exceptions import SnapshotCorruptError, SnapshotError, SnapshotPublishError
from scopegate.models.scope import ScopeSnapshot

_logger = logging.getLogger(__name__)


def load_snapshot(path: str | os.PathLike[str]) -> ScopeSnapshot | None:
    """Read the snapshot at *path*.

    Returns ``None`` when the file does not exist (nothing published yet).
    Raises :class:`SnapshotCorruptError` when it exists but does not parse,
    and :class:`SnapshotError` when it cannot be read at all.
    """
    snapshot_path = Path(path)
    try:
        data = snapshot_path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise SnapshotError(f"failed to read snapshot {snapshot_path}: {exc}", path=str(snapshot_path)) from exc

    try:
        return ScopeSnapshot.model_validate_json(data)
    except ValidationError as exc:
        raise SnapshotCorruptError(
            f"failed to parse snapshot {snapshot_path}: {exc}",
            path=str(snapshot_path),
        ) from exc


class SnapshotStore:
    """Directory-backed store holding exactly one published snapshot."""

    def __init__(self, directory: str | os.PathLike[str], file_name: str) -> None:
        self._directory = Path(directory)
        self._file_name = file_name

    @property
    def path(self) -> Path:
        return self._directory / self._file_name

    @property
    def temp_path(self) -> Path:
        return self._directory / f"{self._file_name}{TEMP_SUFFIX}"

    def read(self) -> ScopeSnapshot | None:
        return load_snapshot(self.path)

    def cleanup_temp_files(self) -> int:
        """Remove ``*.tmp`` leftovers of interrupted publishes; return how many went."""
        if not self._directory.is_dir():
            return 0
        removed = 0
        for tmp_file in self._directory.glob(f"*{TEMP_SUFFIX}"):
            try:
                tmp_file.unlink()
            except OSError as exc:
                _logger.warning("Failed to remove temp file %s: %s", tmp_file, exc)
                continue
            _logger.info("Removed temp file: %s", tmp_file)
            removed += 1
        return removed

    def write_temp(self, snapshot: ScopeSnapshot) -> Path:
        """Serialize *snapshot* to the temp file beside the target."""
        temp_path = self.temp_path
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as fh:
                fh.write(snapshot.to_json(indent=2))
                fh.flush()
                os.fsync(fh.fileno())
        except OSError as exc:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                _logger.warning("Failed to remove temp file %s after write failure", temp_path)
            raise SnapshotPublishError(
                f"failed to write temp file {temp_path}: {exc}",
                path=str(temp_path),
            ) from exc
        return temp_path

    def commit(self, temp_path: Path) -> Path:
        """Atomically move *temp_path* onto the well-known path."""
        final_path = self.path
        try:
            os.replace(temp_path, final_path)
        except OSError as exc:
            try:
                temp_path.unlink()
            except OSError:
                _logger.warning("Failed to remove temp file %s after rename failure", temp_path)
            raise SnapshotPublishError(
                f"failed to rename {temp_path} to {final_path}: {exc}",
                path=str(final_path),
            ) from exc
        return final_path

    def publish(self, snapshot: ScopeSnapshot) -> Path:
        """Clean up leftovers, write to a temp file, then rename it into place."""
        try:
            self.cleanup_temp_files()
        except OSError as exc:
            _logger.warning("Failed to cleanup temp files: %s", exc)

        final_path = self.commit(self.write_temp(snapshot))
        _logger.info("Successfully wrote configuration to %s", final_path)
        return final_path
