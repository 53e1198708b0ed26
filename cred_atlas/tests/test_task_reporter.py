"""
cred_atlas/tests/test_task_reporter.py — Tests for progress reporters.
"""

import logging
import threading

import pytest

from cred_atlas.backend.task_reporter import LoggingTaskReporter, SilentTaskReporter


def test_logging_reporter_lines(caplog):
    reporter = LoggingTaskReporter()
    with caplog.at_level(logging.INFO, logger="cred_atlas.backend.task_reporter"):
        reporter.start("github")
        reporter.finish("github")
    messages = [r.getMessage() for r in caplog.records]
    assert messages[0] == "GO   github"
    assert messages[1].startswith("DONE github (")


def test_active_tasks_tracked():
    reporter = LoggingTaskReporter()
    reporter.start("b")
    reporter.start("a")
    assert reporter.active_tasks() == ["a", "b"]
    reporter.finish("a")
    assert reporter.active_tasks() == ["b"]


def test_double_start_rejected():
    reporter = LoggingTaskReporter()
    reporter.start("x")
    with pytest.raises(ValueError):
        reporter.start("x")


def test_finish_unknown_rejected():
    with pytest.raises(ValueError):
        LoggingTaskReporter().finish("never-started")


def test_concurrent_tasks():
    """Many threads starting and finishing distinct tasks leave nothing active."""
    reporter = LoggingTaskReporter(logging.getLogger("test.reporter"))

    def run(i):
        reporter.start(f"task-{i}")
        reporter.finish(f"task-{i}")

    threads = [threading.Thread(target=run, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert reporter.active_tasks() == []


def test_silent_reporter_records_events():
    reporter = SilentTaskReporter()
    reporter.start("x")
    reporter.finish("x")
    assert reporter.events == [("start", "x"), ("finish", "x")]
