"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job registration with correct configuration
- Immediate first run
- Start/shutdown lifecycle and the shared shutdown event
- Failure isolation of scheduled scans
"""

import threading
from unittest.mock import Mock

from lead_scanner.scheduler import SchedulerService
from lead_scanner.scheduler.service import JOB_ID


class TestSchedulerService:
    """Test suite for SchedulerService."""

    def test_initialization(self):
        scan = Mock()
        shutdown_event = threading.Event()

        scheduler = SchedulerService(
            scan_callable=scan, interval_seconds=3600, shutdown_event=shutdown_event
        )

        assert scheduler.interval_seconds == 3600
        assert scheduler.scan_callable is scan
        assert scheduler.shutdown_event is shutdown_event
        assert not scheduler.is_running()
        assert scheduler.get_next_run_time() is None

    def test_start_and_shutdown(self):
        shutdown_event = threading.Event()
        scheduler = SchedulerService(
            scan_callable=Mock(), interval_seconds=3600, shutdown_event=shutdown_event
        )

        scheduler.start(run_immediately=False)
        assert scheduler.is_running()

        scheduler.shutdown(wait=False)
        assert not scheduler.is_running()
        assert shutdown_event.is_set()

    def test_job_configuration(self):
        scheduler = SchedulerService(scan_callable=Mock(), interval_seconds=7200)

        scheduler.start(run_immediately=False)
        try:
            job = scheduler.scheduler.get_job(JOB_ID)
            assert job.max_instances == 1
            assert job.coalesce is True
            assert job.misfire_grace_time == 7200
            assert job.trigger.interval.total_seconds() == 7200
            assert scheduler.get_next_run_time() is not None
        finally:
            scheduler.shutdown(wait=False)

    def test_immediate_first_run(self):
        ran = threading.Event()
        scheduler = SchedulerService(scan_callable=ran.set, interval_seconds=3600)

        scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.shutdown(wait=False)

    def test_shutdown_before_start_is_safe(self):
        scheduler = SchedulerService(scan_callable=Mock(), interval_seconds=3600)

        scheduler.shutdown()

        assert scheduler.shutdown_event.is_set()


class TestRunJob:
    def test_trigger_now_runs_synchronously(self):
        scan = Mock()
        scheduler = SchedulerService(scan_callable=scan, interval_seconds=3600)

        scheduler.trigger_now()

        scan.assert_called_once_with()

    def test_failures_do_not_escape(self):
        scan = Mock(side_effect=RuntimeError("registry down"))
        scheduler = SchedulerService(scan_callable=scan, interval_seconds=3600)

        scheduler.trigger_now()
        scheduler.trigger_now()

        assert scan.call_count == 2

    def test_no_run_after_shutdown(self):
        scan = Mock()
        scheduler = SchedulerService(scan_callable=scan, interval_seconds=3600)
        scheduler.shutdown()

        scheduler.trigger_now()

        scan.assert_not_called()
