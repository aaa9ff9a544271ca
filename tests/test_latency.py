"""Tests for the latency monitor."""

import logging
import time

import pytest

from jobsearch.services.latency import LatencyMonitor
from jobsearch.services.query_parser import parse_search_params


def test_slow_request_logs_structured_warning(caplog):
    query = parse_search_params([("work_mode", "remote"), ("size", "5")])

    with caplog.at_level(logging.WARNING, logger="jobsearch.services.latency"):
        with LatencyMonitor(threshold_ms=1, operation="search") as monitor:
            monitor.query = query
            time.sleep(0.01)

    assert monitor.is_slow
    [record] = caplog.records
    assert record.levelno == logging.WARNING
    assert record.elapsed_ms == monitor.elapsed_ms
    assert record.query["work_mode"] == ["remote"]
    assert record.query["size"] == 5


def test_fast_request_does_not_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="jobsearch.services.latency"):
        with LatencyMonitor(threshold_ms=60_000) as monitor:
            pass

    assert monitor.elapsed_ms is not None
    assert not monitor.is_slow
    assert caplog.records == []


def test_errors_pass_through_and_are_still_timed(caplog):
    with caplog.at_level(logging.WARNING, logger="jobsearch.services.latency"):
        with pytest.raises(ValueError):
            with LatencyMonitor(threshold_ms=0) as monitor:
                time.sleep(0.001)
                raise ValueError("bad")

    assert monitor.elapsed_ms > 0
    assert caplog.records[0].failed is True
