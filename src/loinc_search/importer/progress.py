"""
Progress Store - Durable checkpoint of the batch importer.

The marker is a single small JSON object, replaced atomically after every
batch and deleted when the import completes. Its presence therefore always
means "incomplete".
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..core.types import ProgressMarker
from ..core.utils import atomic_write_text


logger = logging.getLogger(__name__)


class ProgressStore:
    """Reads and writes the importer's progress marker file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[ProgressMarker]:
        """
        Read the marker in one shot.

        Returns:
            The marker, or None if it is missing or unreadable. An unreadable
            marker is logged and treated as absent.
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            marker = ProgressMarker.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable progress marker {self.path}: {e}")
            return None

        logger.debug(
            f"Read progress marker: processed_count={marker.processed_count}, "
            f"last_code={marker.last_code}"
        )
        return marker

    def save(self, marker: ProgressMarker) -> None:
        """Atomically replace the marker."""
        atomic_write_text(self.path, json.dumps(marker.to_dict(), indent=2))

    def clear(self) -> None:
        """Delete the marker if present."""
        if self.path.exists():
            self.path.unlink()
            logger.debug(f"Deleted progress marker {self.path}")
