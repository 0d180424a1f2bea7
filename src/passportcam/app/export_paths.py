from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

_log = logging.getLogger(__name__)

DEFAULT_FILENAME = "passport-photo.jpg"


@dataclass(frozen=True)
class ExportPaths:
    """
    Where finalized photos are written when the user does not pick a path.
    """
    base_dir: Path
    photo: Path

    @staticmethod
    def default(app_name: str = "passportcam") -> "ExportPaths":
        base = Path(tempfile.gettempdir()) / app_name
        base.mkdir(parents=True, exist_ok=True)
        return ExportPaths(base_dir=base, photo=base / DEFAULT_FILENAME)

    def save(self, data: bytes, path: Optional[Union[str, Path]] = None) -> Path:
        """Write encoded image bytes; returns the path written."""
        target = Path(path) if path is not None else self.photo
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        _log.info("Saved photo to %s (%d bytes)", target, len(data))
        return target

    def cleanup(self) -> None:
        """
        Best-effort cleanup. Safe to call multiple times.
        """
        try:
            if self.photo.exists():
                self.photo.unlink()
        except OSError as e:
            _log.debug("Could not remove %s: %s", self.photo, e)
