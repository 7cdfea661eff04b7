import logging
import time
from logging.handlers import QueueHandler
from pathlib import Path

import pytest

from cnapp.core.logging.builder import (
    NonBlockingQueueHandler,
    get_queue_stats,
    setup_logging,
    stop_queue_logging,
)
from cnapp.core.logging.filters import reset_correlation_id, set_correlation_id
from ..conftest import make_test_settings


def queue_settings(tmp_path: Path, **overrides):
    values = {
        "LOG_FORMAT": "json",
        "LOG_TO_STDOUT": False,
        "LOG_DIR": tmp_path,
        "LOG_MAX_BYTES": 1_000_000,
        "LOG_BACKUP_COUNT": 1,
        "LOG_USE_QUEUE": True,
    }
    values.update(overrides)
    return make_test_settings(**values)


@pytest.fixture(autouse=True)
def restore_logging():
    stop_queue_logging()
    yield
    stop_queue_logging()
    setup_logging(make_test_settings())


def test_queue_listener_writes_file(tmp_path):
    setup_logging(queue_settings(tmp_path))
    assert get_queue_stats()["queue_present"] is True

    logger = logging.getLogger("cnapp.test.queue")
    token = set_correlation_id("queued-1")
    try:
        for i in range(10):
            logger.info("queued message %d", i, extra={"iteration": i})
    finally:
        reset_correlation_id(token)

    time.sleep(0.05)
    # stopping flushes the listener
    stop_queue_logging()

    log_file = tmp_path / "cnapp.log"
    assert log_file.exists()
    text = log_file.read_text()
    assert "queued message 0" in text
    assert "queued message 9" in text
    assert "iteration" in text
    assert "queued-1" in text
    assert get_queue_stats()["queue_present"] is False


def test_root_logger_only_enqueues(tmp_path):
    setup_logging(queue_settings(tmp_path))

    own = [h for h in logging.getLogger().handlers if isinstance(h, QueueHandler)]
    assert len(own) == 1
    assert not isinstance(own[0], NonBlockingQueueHandler)


def test_bounded_queue_uses_non_blocking_handler(tmp_path):
    setup_logging(queue_settings(tmp_path, LOG_QUEUE_MAX_SIZE=100))

    own = [h for h in logging.getLogger().handlers if isinstance(h, QueueHandler)]
    assert len(own) == 1
    assert isinstance(own[0], NonBlockingQueueHandler)


def test_stop_queue_logging_is_idempotent():
    stop_queue_logging()
    stop_queue_logging()
    assert get_queue_stats()["queue_present"] is False
