import io

from gchat import feedback as feedback_module
from gchat.feedback import CHIME_PATTERN, WARNING_PATTERN, SoundFeedback


def test_patterns_ring_on_a_background_thread(monkeypatch):
    monkeypatch.setattr(feedback_module.time, "sleep", lambda s: None)
    stream = io.StringIO()
    fb = SoundFeedback(enabled=True, stream=stream)

    t = fb._play(CHIME_PATTERN)
    t.join(timeout=5)
    assert t.daemon
    assert stream.getvalue() == "\a" * len(CHIME_PATTERN)

    t = fb._play(WARNING_PATTERN)
    t.join(timeout=5)
    assert stream.getvalue() == "\a" * (len(CHIME_PATTERN) + len(WARNING_PATTERN))


def test_disabled_feedback_is_silent():
    stream = io.StringIO()
    fb = SoundFeedback(enabled=False, stream=stream)
    fb.success()
    fb.failure()
    assert fb._play(CHIME_PATTERN) is None
    assert stream.getvalue() == ""


def test_closed_stream_does_not_raise(monkeypatch):
    monkeypatch.setattr(feedback_module.time, "sleep", lambda s: None)
    stream = io.StringIO()
    stream.close()
    t = SoundFeedback(stream=stream)._play(WARNING_PATTERN)
    t.join(timeout=5)
    assert not t.is_alive()
