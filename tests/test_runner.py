#!/usr/bin/env python3
"""
Tests for the update runner: record selection, per-family resolution,
fault isolation, forced update coalescing and graceful shutdown.
"""

import os
import sys
import threading
import time
import unittest
from unittest.mock import MagicMock

# Add parent directory to the path so we can import the necessary modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ddns_updater.models import IPVersion, Status
from ddns_updater.notify import PRIORITY_ERROR, PRIORITY_INFO
from ddns_updater.records import RecordStore
from ddns_updater.runner import Runner, RunnerState

from fakes import BlockingUpdater, MemoryPersistence, StaticIPFetcher, StubUpdater, make_event, make_settings

IPV4 = IPVersion.IPV4
IPV6 = IPVersion.IPV6


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RunnerTestCase(unittest.TestCase):

    def make_runner(self, settings, ips=None, updater=None, events=None, period=3600, **kwargs):
        self.persistence = MemoryPersistence(events, fail_writes=kwargs.pop('fail_writes', False))
        self.store = RecordStore(settings, self.persistence)
        self.fetcher = StaticIPFetcher(ips if ips is not None else {IPV4: "1.2.3.4"})
        self.updater = updater or StubUpdater()
        self.runner = Runner(self.store, self.fetcher, period, updater=self.updater, **kwargs)
        return self.runner

    def tearDown(self):
        runner = getattr(self, 'runner', None)
        if runner is not None and runner._thread is not None:
            if isinstance(self.updater, BlockingUpdater):
                self.updater.release.set()
            runner.stop()
            runner.wait_stopped(5)


class TestRunCycle(RunnerTestCase):

    def test_first_cycle_sets_unset_record(self):
        runner = self.make_runner([make_settings()])
        report = runner.run_cycle(forced=True)

        snapshot = self.store.get(("example.com", "@"))
        self.assertEqual(snapshot.status, Status.UP_TO_DATE)
        self.assertEqual(snapshot.current_ip, "1.2.3.4")
        self.assertEqual(len(snapshot.history), 1)
        self.assertEqual(report.updated, ["example.com"])
        self.assertEqual(self.updater.calls, [("example.com", "1.2.3.4")])

    def test_unchanged_ip_makes_no_provider_call(self):
        events = {("example.com", "@"): [make_event(Status.UP_TO_DATE, "1.2.3.4")]}
        runner = self.make_runner([make_settings()], events=events)
        report = runner.run_cycle()

        self.assertEqual(self.updater.calls, [])
        self.assertEqual(report.unchanged, ["example.com"])
        self.assertEqual(len(self.store.get(("example.com", "@")).history), 1)

    def test_refresh_updates_unchanged_records(self):
        events = {("example.com", "@"): [make_event(Status.UP_TO_DATE, "1.2.3.4")]}
        runner = self.make_runner([make_settings()], events=events)
        runner.run_cycle(forced=True, refresh=True)
        self.assertEqual(self.updater.calls, [("example.com", "1.2.3.4")])

    def test_changed_ip_is_pushed(self):
        events = {("example.com", "@"): [make_event(Status.UP_TO_DATE, "1.1.1.1")]}
        runner = self.make_runner([make_settings()], events=events)
        runner.run_cycle()

        snapshot = self.store.get(("example.com", "@"))
        self.assertEqual(snapshot.current_ip, "1.2.3.4")
        self.assertEqual(snapshot.previous_ips(), ["1.1.1.1"])

    def test_failure_keeps_previous_ip_and_recovers_next_cycle(self):
        events = {("example.com", "@"): [make_event(Status.UP_TO_DATE, "1.1.1.1")]}
        updater = StubUpdater({"example.com": (Status.FAIL, "transient error: timeout")})
        runner = self.make_runner([make_settings()], events=events, updater=updater)

        report = runner.run_cycle()
        snapshot = self.store.get(("example.com", "@"))
        self.assertEqual(snapshot.status, Status.FAIL)
        self.assertEqual(snapshot.current_ip, "1.1.1.1")
        self.assertEqual(report.failed, [("example.com", "transient error: timeout")])

        updater.results.clear()
        runner.run_cycle()
        snapshot = self.store.get(("example.com", "@"))
        self.assertEqual(snapshot.status, Status.UP_TO_DATE)
        self.assertEqual(snapshot.current_ip, "1.2.3.4")
        self.assertEqual([e.status for e in snapshot.history],
                         [Status.UP_TO_DATE, Status.FAIL, Status.UP_TO_DATE])

    def test_failed_record_is_retried_with_same_ip(self):
        events = {("example.com", "@"): [make_event(Status.UP_TO_DATE, "1.2.3.4", minutes_ago=20),
                                         make_event(Status.FAIL, None, minutes_ago=10)]}
        runner = self.make_runner([make_settings()], events=events)
        runner.run_cycle()
        self.assertEqual(self.updater.calls, [("example.com", "1.2.3.4")])

    def test_ip_resolved_once_per_family(self):
        settings = [make_settings(host=h) for h in ("a", "b", "c")]
        runner = self.make_runner(settings)
        runner.run_cycle()
        self.assertEqual(self.fetcher.calls, [IPV4])
        self.assertEqual(len(self.updater.calls), 3)

    def test_resolution_failure_only_skips_that_family(self):
        settings = [make_settings(host="v4"), make_settings(host="v6", ip_version=IPV6)]
        runner = self.make_runner(settings, ips={IPV4: "1.2.3.4"})
        report = runner.run_cycle()

        self.assertEqual(self.store.get(("example.com", "v4")).status, Status.UP_TO_DATE)
        v6 = self.store.get(("example.com", "v6"))
        self.assertEqual(v6.status, Status.UNSET)
        self.assertEqual(v6.history, ())
        self.assertEqual(report.skipped, ["v6.example.com"])
        self.assertEqual(self.updater.calls, [("v4.example.com", "1.2.3.4")])

    def test_provider_failure_does_not_affect_other_records(self):
        settings = [make_settings(host="bad"), make_settings(host="good")]
        updater = StubUpdater({"bad.example.com": (Status.FAIL, "permanent error: badauth")})
        runner = self.make_runner(settings, updater=updater)
        report = runner.run_cycle()

        self.assertEqual(self.store.get(("example.com", "bad")).status, Status.FAIL)
        self.assertEqual(self.store.get(("example.com", "good")).status, Status.UP_TO_DATE)
        self.assertEqual(report.updated, ["good.example.com"])

    def test_updater_exception_is_recorded_as_failure(self):
        def exploding_updater(settings, ip, logger):
            raise RuntimeError("boom")

        runner = self.make_runner([make_settings()], updater=exploding_updater)
        report = runner.run_cycle()
        snapshot = self.store.get(("example.com", "@"))
        self.assertEqual(snapshot.status, Status.FAIL)
        self.assertIn("boom", snapshot.message)
        self.assertEqual(len(report.failed), 1)

    def test_persistence_failure_does_not_abort_cycle(self):
        settings = [make_settings(host="a"), make_settings(host="b")]
        runner = self.make_runner(settings, fail_writes=True)
        report = runner.run_cycle()

        self.assertEqual(sorted(report.updated), ["a.example.com", "b.example.com"])
        for snapshot in self.store.all():
            self.assertEqual(snapshot.status, Status.UP_TO_DATE)
            self.assertEqual(snapshot.current_ip, "1.2.3.4")

    def test_max_workers_bounds_parallel_updates(self):
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def slow_updater(settings, ip, logger):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.05)
            with lock:
                active[0] -= 1
            return Status.UP_TO_DATE, "ok"

        settings = [make_settings(host=f"h{i}") for i in range(6)]
        runner = self.make_runner(settings, updater=slow_updater, max_workers=2)
        report = runner.run_cycle()

        self.assertEqual(len(report.updated), 6)
        self.assertLessEqual(peak[0], 2)

    def test_invalid_max_workers(self):
        with self.assertRaises(ValueError):
            self.make_runner([make_settings()], max_workers=0)


class TestNotifications(RunnerTestCase):

    def test_one_error_notification_per_cycle(self):
        notify = MagicMock()
        settings = [make_settings(host="a"), make_settings(host="b")]
        updater = StubUpdater({"a.example.com": (Status.FAIL, "transient error: x"),
                               "b.example.com": (Status.FAIL, "transient error: y")})
        runner = self.make_runner(settings, updater=updater, notify=notify)
        runner.run_cycle()

        notify.assert_called_once()
        priority, message = notify.call_args[0]
        self.assertEqual(priority, PRIORITY_ERROR)
        self.assertIn("a.example.com", message)
        self.assertIn("b.example.com", message)

    def test_info_notification_when_records_updated(self):
        notify = MagicMock()
        runner = self.make_runner([make_settings()], notify=notify)
        runner.run_cycle()
        notify.assert_called_once()
        self.assertEqual(notify.call_args[0][0], PRIORITY_INFO)

    def test_no_notification_when_nothing_changed(self):
        notify = MagicMock()
        events = {("example.com", "@"): [make_event(Status.UP_TO_DATE, "1.2.3.4")]}
        runner = self.make_runner([make_settings()], events=events, notify=notify)
        runner.run_cycle()
        notify.assert_not_called()

    def test_notifier_errors_are_swallowed(self):
        notify = MagicMock(side_effect=RuntimeError("gotify down"))
        runner = self.make_runner([make_settings()], notify=notify)
        report = runner.run_cycle()
        self.assertEqual(report.updated, ["example.com"])


class TestRunLoop(RunnerTestCase):

    def test_forced_updates_coalesce_while_running(self):
        updater = BlockingUpdater()
        runner = self.make_runner([make_settings()], updater=updater)
        runner.start()

        self.assertTrue(runner.force_update())
        self.assertTrue(updater.started.wait(5))
        self.assertEqual(runner.state, RunnerState.RUNNING)

        self.assertTrue(runner.force_update())
        self.assertFalse(runner.force_update())
        self.assertFalse(runner.force_update())

        updater.release.set()
        self.assertTrue(wait_until(lambda: runner.cycles_completed >= 2))
        time.sleep(0.2)
        self.assertEqual(runner.cycles_completed, 2)
        self.assertTrue(wait_until(lambda: runner.state == RunnerState.IDLE))

    def test_periodic_cycles(self):
        runner = self.make_runner([make_settings()], period=0.05)
        runner.start()
        self.assertTrue(wait_until(lambda: runner.cycles_completed >= 2))
        self.assertEqual(len(self.updater.calls), 1)

    def test_stop_while_idle(self):
        runner = self.make_runner([make_settings()])
        runner.start()
        runner.stop()
        self.assertTrue(runner.wait_stopped(5))
        self.assertEqual(runner.state, RunnerState.STOPPED)
        self.assertEqual(runner.cycles_completed, 0)
        self.assertFalse(runner.force_update())

    def test_stop_drains_in_flight_update(self):
        updater = BlockingUpdater()
        runner = self.make_runner([make_settings()], updater=updater)
        runner.start()
        runner.force_update()
        self.assertTrue(updater.started.wait(5))

        runner.stop()
        self.assertEqual(runner.state, RunnerState.DRAINING)
        self.assertFalse(runner.wait_stopped(0.1))

        updater.release.set()
        self.assertTrue(runner.wait_stopped(5))
        self.assertEqual(runner.state, RunnerState.STOPPED)
        self.assertEqual(runner.cycles_completed, 1)
        self.assertEqual(self.store.get(("example.com", "@")).status, Status.UP_TO_DATE)
        self.assertFalse(runner.force_update())

    def test_queued_updates_are_skipped_after_stop(self):
        updater = BlockingUpdater()
        settings = [make_settings(host=f"h{i}") for i in range(3)]
        runner = self.make_runner(settings, updater=updater, max_workers=1)
        runner.start()
        runner.force_update()
        self.assertTrue(updater.started.wait(5))

        runner.stop()
        updater.release.set()
        self.assertTrue(runner.wait_stopped(5))

        self.assertEqual(len(updater.calls), 1)
        self.assertEqual(len(runner.last_report.skipped), 2)
        statuses = sorted(s.status.value for s in self.store.all())
        self.assertEqual(statuses, sorted([Status.UP_TO_DATE.value, Status.UNSET.value, Status.UNSET.value]))


if __name__ == '__main__':
    unittest.main()
