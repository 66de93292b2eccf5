import pytest

from judging.models import Topic
from judging.timer import Countdown


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_countdown_runs_pauses_and_resets():
    clock = FakeClock()
    cd = Countdown(60, clock=clock)
    assert cd.remaining() == 60
    cd.start()
    clock.now += 20
    assert cd.remaining() == 40
    cd.pause()
    clock.now += 100
    assert cd.remaining() == 40
    assert not cd.running
    cd.start()
    clock.now += 50
    assert cd.expired()
    assert cd.remaining() == 0
    assert cd.overtime() == 10
    cd.reset()
    assert cd.elapsed() == 0
    assert not cd.expired()


def test_start_twice_keeps_original_start():
    clock = FakeClock()
    cd = Countdown(10, clock=clock)
    cd.start()
    clock.now += 4
    cd.start()
    clock.now += 1
    assert cd.elapsed() == 5


def test_negative_length_rejected():
    with pytest.raises(ValueError):
        Countdown(-1)


def test_topic_countdown_uses_minutes():
    assert Topic(id="t", name="Speech", group_id="g", time_limit=3).countdown().seconds == 180
    assert Topic(id="t", name="Speech", group_id="g").countdown() is None
