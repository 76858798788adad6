# gchat/feedback.py

import logging
import sys
import threading
import time
from typing import Sequence, TextIO


logger = logging.getLogger("gchat")

# seconds to wait after each bell
CHIME_PATTERN = (0.15, 0.15, 0.0)
WARNING_PATTERN = (0.4, 0.0)


class SoundFeedback:
    """
    Fire-and-forget audio cues rung on a daemon thread so the caller never
    waits for them.
    """

    def __init__(self, enabled: bool = True, stream: TextIO | None = None):
        self.enabled = enabled
        self._stream = stream

    def success(self) -> None:
        self._play(CHIME_PATTERN)

    def failure(self) -> None:
        self._play(WARNING_PATTERN)

    def _play(self, pattern: Sequence[float]) -> threading.Thread | None:
        if not self.enabled:
            return None
        t = threading.Thread(target=self._ring, args=(tuple(pattern),), daemon=True)
        t.start()
        return t

    def _ring(self, pattern: Sequence[float]) -> None:
        stream = self._stream or sys.stdout
        try:
            for gap in pattern:
                stream.write("\a")
                stream.flush()
                if gap:
                    time.sleep(gap)
        except (OSError, ValueError) as e:
            logger.debug(f"Audio feedback unavailable: {e}")
