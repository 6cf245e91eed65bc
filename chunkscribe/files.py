"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Temporary file helpers with guaranteed cleanup.
"""
from __future__ import annotations

import logging
import os
import tempfile
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


def safe_delete(path: str | os.PathLike) -> bool:
    """Remove ``path`` if it exists. Never raises; returns True when a file was removed."""

    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("Failed to delete temporary file %s: %s", path, exc)
        return False


def generate_temp_path(extension: str, prefix: str = "temp", directory: str | None = None) -> Path:
    """Return a unique, not yet created path in the temp directory."""

    extension = extension.lstrip(".")
    name = f"{prefix}-{uuid.uuid4().hex[:12]}"
    if extension:
        name += f".{extension}"
    return Path(directory or tempfile.gettempdir()) / name


class ScratchSpace:
    """Owns a private temp directory and every file handed out from it.

    All registered files and the directory itself are removed exactly once when the
    context exits, whether the body returned or raised.
    """

    def __init__(self, prefix: str = "chunkscribe-", base_dir: str | None = None) -> None:
        self.prefix = prefix
        self.base_dir = base_dir
        self.directory: Path | None = None
        self._files: list[Path] = []
        self._closed = False

    def __enter__(self) -> "ScratchSpace":
        self.directory = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir))
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        return False

    @property
    def files(self) -> list[Path]:
        return list(self._files)

    def path(self, name: str) -> Path:
        """Reserve ``name`` inside the scratch directory."""
        if self.directory is None or self._closed:
            raise RuntimeError("ScratchSpace is not active")
        path = self.directory / name
        if path not in self._files:
            self._files.append(path)
        return path

    def cleanup(self) -> None:
        if self._closed:
            return
        self._closed = True
        removed = sum(1 for path in self._files if safe_delete(path))
        if self.directory is not None:
            try:
                self.directory.rmdir()
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Failed to remove scratch directory %s: %s", self.directory, exc)
        logger.debug("Scratch cleanup removed %d of %d files", removed, len(self._files))
