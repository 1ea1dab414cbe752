"""Tests for the daemon loop."""

import logging
import threading

from models import CycleState
from scheduler import Scheduler

from conftest import StopAfterWaits


class TestScheduler:
    def test_waits_after_each_cycle(self):
        journal = []

        def cycle():
            journal.append("cycle")
            return CycleState.DONE

        stop = StopAfterWaits(limit=3, journal=journal)
        Scheduler(cycle, 60, stop_event=stop).run_forever()

        assert journal == ["cycle", "wait"] * 3
        assert stop.waits == [60, 60, 60]

    def test_failures_do_not_stop_the_loop(self, caplog):
        outcomes = iter([CycleState.FAILED, CycleState.FAILED, CycleState.DONE])
        stop = StopAfterWaits(limit=3)

        Scheduler(lambda: next(outcomes), 10, stop_event=stop).run_forever()

        assert len(stop.waits) == 3
        assert caplog.text.count("Database backup failed") == 2

    def test_crashing_cycle_is_logged_and_rescheduled(self, caplog):
        calls = []

        def cycle():
            calls.append(1)
            raise RuntimeError("boom")

        stop = StopAfterWaits(limit=2)
        Scheduler(cycle, 5, stop_event=stop).run_forever()

        assert len(calls) == 2
        assert "Backup cycle crashed" in caplog.text

    def test_stop_before_start_runs_nothing(self):
        calls = []
        scheduler = Scheduler(lambda: calls.append(1) or CycleState.DONE, 5)
        scheduler.stop()

        scheduler.run_forever()

        assert calls == []
        assert scheduler.stopped

    def test_stop_during_cycle_finishes_it(self, caplog):
        caplog.set_level(logging.INFO)
        holder = {}

        def cycle():
            holder["scheduler"].stop()
            return CycleState.DONE

        scheduler = Scheduler(cycle, 3600)
        holder["scheduler"] = scheduler
        scheduler.run_forever()

        assert "Successfully performed database backup..." in caplog.text
        assert "Backup daemon stopped" in caplog.text

    def test_run_once_returns_state(self):
        assert Scheduler(lambda: CycleState.FAILED, 1).run_once() is CycleState.FAILED


def test_failed_cycle_logs_a_single_error(caplog):
    def cycle():
        logging.getLogger("dumper").error("Unable to perform a backup at now")
        return CycleState.FAILED

    Scheduler(cycle, 1).run_once()

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert [r.getMessage() for r in errors] == ["Unable to perform a backup at now"]
    assert "Database backup failed" in caplog.text


def test_interval_is_capped_to_the_timer_limit():
    stop = StopAfterWaits(limit=1)
    Scheduler(lambda: CycleState.DONE, 1e12, stop_event=stop).run_forever()
    assert stop.waits == [threading.TIMEOUT_MAX]
