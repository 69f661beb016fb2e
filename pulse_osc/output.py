"""Plain-text BPM mirror for third-party tools."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class BpmFileWriter:
    def __init__(self, path: Path | str, enabled: bool = True):
        self.path = Path(path)
        self.enabled = enabled

    def write(self, bpm: int) -> None:
        """Overwrite the file with the current BPM."""
        if not self.enabled:
            return
        try:
            self.path.write_text(str(bpm), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to write BPM to '%s': %s", self.path, e)
