# gchat/watcher.py

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional


logger = logging.getLogger("gchat")


@dataclass(frozen=True)
class FileVersion:
    mtime_ns: int
    size: int


def current_version(path: Path) -> Optional[FileVersion]:
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    return FileVersion(mtime_ns=st.st_mtime_ns, size=st.st_size)


@dataclass
class WatchState:
    last_seen_version: Optional[FileVersion] = None


def poll_once(path: Path, state: WatchState) -> bool:
    """
    True when the file's version differs from state.last_seen_version.
    The state is updated exactly once per detected change.
    """
    version = current_version(path)
    if version is None or version == state.last_seen_version:
        return False
    state.last_seen_version = version
    return True


class ChangeWatcher:
    """
    Polls one file for changes. After a change it waits for the debounce
    interval so a multi-write save is seen as a single snapshot.
    """

    def __init__(
        self,
        path,
        *,
        poll_interval: float = 0.25,
        debounce_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.path = Path(path)
        self.poll_interval = poll_interval
        self.debounce_seconds = debounce_seconds
        self.state = WatchState()
        self._sleep = sleep

    def mark_seen(self, version: Optional[FileVersion] = None) -> None:
        """
        Adopt version as seen, or the file's current version when not given.
        Passing the version recorded right after our own append keeps a save
        made later in the same turn visible as a change.
        """
        self.state.last_seen_version = version if version is not None else current_version(self.path)

    def wait_for_change(self, should_stop: Callable[[], bool] = lambda: False) -> bool:
        """Block until the file changes and settles. False if stopped first."""
        while not should_stop():
            if poll_once(self.path, self.state):
                self._sleep(self.debounce_seconds)
                # writes that landed during the debounce belong to this change
                self.mark_seen()
                return True
            self._sleep(self.poll_interval)
        return False

    def watch(self, on_change: Callable[[], None], should_stop: Callable[[], bool] = lambda: False) -> None:
        while self.wait_for_change(should_stop):
            logger.debug(f"Change detected in {self.path}")
            on_change()
