from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


class SnapshotLoaderError(RuntimeError):
    """Exception raised when a license snapshot cannot be read."""


class SnapshotLoader:
    """Load the raw license/usage snapshot exported by the admin application."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).resolve()

    def load(self) -> dict[str, Any]:
        """Return the decoded snapshot document."""

        if not self.path.exists():
            raise SnapshotLoaderError(f"License snapshot not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise SnapshotLoaderError(f"Invalid JSON in license snapshot: {self.path}") from exc

        if not isinstance(data, dict):
            raise SnapshotLoaderError(f"License snapshot must be a JSON object: {self.path}")

        return data


__all__ = ["SnapshotLoader", "SnapshotLoaderError"]
