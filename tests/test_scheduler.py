from antetown.scheduler import ManualClock, PhaseTimer, TimerFired


def make_timer(clock):
    delivered = []
    timer = PhaseTimer(clock, delivered.append)
    return timer, delivered


def test_manual_clock_fires_in_deadline_order():
    clock = ManualClock()
    fired = []
    clock.call_later(5, lambda: fired.append("late"))
    clock.call_later(1, lambda: fired.append("early"))
    assert clock.advance(0.5) == 0
    assert clock.advance(10) == 2
    assert fired == ["early", "late"]
    assert clock.now() == 10.5


def test_manual_clock_skips_cancelled():
    clock = ManualClock()
    fired = []
    handle = clock.call_later(1, lambda: fired.append("x"))
    handle.cancel()
    assert clock.pending() == 0
    assert clock.advance(2) == 0
    assert fired == []


def test_timer_delivers_message_not_callback():
    clock = ManualClock()
    timer, delivered = make_timer(clock)
    ran = []
    token = timer.arm(3, lambda: ran.append(True), "decision")
    clock.advance(3)
    assert delivered == [TimerFired(token, "decision")]
    assert ran == []
    callback = timer.claim(token)
    callback()
    assert ran == [True]
    assert not timer.armed


def test_rearm_invalidates_previous_token():
    clock = ManualClock()
    timer, delivered = make_timer(clock)
    first = timer.arm(5, lambda: None, "first")
    second = timer.arm(5, lambda: None, "second")
    assert first != second
    assert timer.claim(first) is None
    assert timer.label == "second"
    clock.advance(5)
    # only the live arming reaches the inbox
    assert [m.label for m in delivered] == ["second"]


def test_cancel_then_stale_claim():
    clock = ManualClock()
    timer, delivered = make_timer(clock)
    token = timer.arm(1, lambda: None, "ante")
    timer.cancel()
    assert timer.claim(token) is None
    assert clock.advance(5) == 0
    assert delivered == []


def test_remaining_tracks_clock():
    clock = ManualClock(start=100)
    timer, _ = make_timer(clock)
    assert timer.remaining() is None
    timer.arm(10, lambda: None, "countdown")
    clock.advance(4)
    assert timer.remaining() == 6
    assert timer.deadline == 110
