import os

from gchat.watcher import ChangeWatcher, WatchState, current_version, poll_once


def _touch(path, text, mtime_ns):
    path.write_text(text, encoding="utf-8")
    os.utime(path, ns=(mtime_ns, mtime_ns))


def test_poll_once_reports_each_change_once(tmp_path):
    path = tmp_path / "chat.md"
    state = WatchState()

    assert poll_once(path, state) is False

    _touch(path, "a", 1_000_000_000)
    assert poll_once(path, state) is True
    assert state.last_seen_version == current_version(path)
    assert poll_once(path, state) is False

    _touch(path, "ab", 2_000_000_000)
    assert poll_once(path, state) is True
    assert poll_once(path, state) is False


def test_wait_for_change_debounces_and_absorbs_late_writes(tmp_path):
    path = tmp_path / "chat.md"
    _touch(path, "start", 1_000_000_000)
    sleeps = []

    def fake_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) == 1:
            _touch(path, "start + edit", 2_000_000_000)
        elif len(sleeps) == 2:
            # second write of the same save, during the debounce
            _touch(path, "start + edit + more", 3_000_000_000)

    watcher = ChangeWatcher(path, poll_interval=0.1, debounce_seconds=0.5, sleep=fake_sleep)
    watcher.mark_seen()

    assert watcher.wait_for_change() is True
    assert sleeps == [0.1, 0.5]
    assert watcher.state.last_seen_version == current_version(path)
    assert poll_once(path, watcher.state) is False


def test_wait_for_change_can_be_stopped(tmp_path):
    path = tmp_path / "chat.md"
    _touch(path, "x", 1_000_000_000)
    watcher = ChangeWatcher(path, sleep=lambda s: None)
    watcher.mark_seen()
    polls = []

    def should_stop():
        polls.append(1)
        return len(polls) > 3

    assert watcher.wait_for_change(should_stop) is False


def test_watch_calls_back_per_change(tmp_path):
    path = tmp_path / "chat.md"
    _touch(path, "x", 1_000_000_000)
    watcher = ChangeWatcher(path, sleep=lambda s: None)
    changes = []
    # never marked seen, so the existing file counts as one change
    watcher.watch(lambda: changes.append(1), should_stop=lambda: len(changes) >= 1)
    assert changes == [1]


def test_mark_seen_with_an_older_version_keeps_later_writes_visible(tmp_path):
    path = tmp_path / "chat.md"
    _touch(path, "ours", 1_000_000_000)
    ours = current_version(path)
    _touch(path, "ours + theirs", 2_000_000_000)
    watcher = ChangeWatcher(path, sleep=lambda s: None)

    watcher.mark_seen(ours)

    assert watcher.state.last_seen_version == ours
    assert poll_once(path, watcher.state) is True
