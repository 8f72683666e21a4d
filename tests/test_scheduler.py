"""
Tests for the match scheduler.
"""

import pytest

from conquest_game_engine.core.scheduler import Scheduler


def test_jobs_run_in_due_then_insertion_order():
    print("=" * 60)
    print("TESTING SCHEDULER ORDERING")
    print("=" * 60)

    scheduler = Scheduler()
    calls = []
    scheduler.schedule_at(300, lambda: calls.append('late'))
    scheduler.schedule_at(100, lambda: calls.append('first'))
    scheduler.schedule_at(100, lambda: calls.append('second'))

    assert scheduler.run_due(99) == 0
    assert scheduler.run_due(100) == 2
    assert calls == ['first', 'second']
    assert scheduler.run_due(1000) == 1
    assert calls == ['first', 'second', 'late']
    assert scheduler.pending_count == 0
    print("✓ Ties broken by insertion order")


def test_periodic_job_catches_up():
    scheduler = Scheduler()
    ticks = []
    scheduler.schedule_every(200, lambda: ticks.append(scheduler.now_ms))

    scheduler.run_due(1000)

    assert ticks == [200, 400, 600, 800, 1000]
    assert scheduler.next_due() == pytest.approx(1200)
    assert scheduler.pending_count == 1


def test_schedule_after_uses_current_clock():
    scheduler = Scheduler()
    scheduler.run_due(500)
    job = scheduler.schedule_after(250, lambda: None)
    assert job.due_ms == 750


def test_cancelled_jobs_do_not_run():
    scheduler = Scheduler()
    calls = []
    job = scheduler.schedule_at(100, lambda: calls.append('x'))
    job.cancel()

    assert scheduler.pending_count == 0
    assert scheduler.run_due(200) == 0
    assert calls == []


def test_clear_from_inside_a_periodic_callback():
    scheduler = Scheduler()
    calls = []

    def tick():
        calls.append(scheduler.now_ms)
        if len(calls) == 3:
            scheduler.clear()

    scheduler.schedule_every(100, tick)
    scheduler.schedule_at(150, lambda: calls.append('one-shot'))
    scheduler.run_due(1000)

    assert calls == [100, 'one-shot', 200]
    assert scheduler.pending_count == 0
    assert scheduler.next_due() is None


def test_reset_rewinds_the_clock():
    scheduler = Scheduler()
    scheduler.schedule_every(100, lambda: None)
    scheduler.run_due(350)

    scheduler.reset()

    assert scheduler.now_ms == 0
    assert scheduler.pending_count == 0


def test_non_positive_period_is_rejected():
    with pytest.raises(ValueError):
        Scheduler().schedule_every(0, lambda: None)


if __name__ == "__main__":
    test_jobs_run_in_due_then_insertion_order()
    test_periodic_job_catches_up()
    test_clear_from_inside_a_periodic_callback()
    print("\n✓ All scheduler tests passed")
