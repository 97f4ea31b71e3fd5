"""Tests for the structured logger"""

import json
import re

import pytest

from utils.logger import LogLevel, get_logger


@pytest.mark.parametrize('name, level', [
    ('debug', LogLevel.DEBUG),
    ('INFO', LogLevel.INFO),
    ('warn', LogLevel.WARNING),
    (' error ', LogLevel.ERROR),
    ('bogus', LogLevel.INFO),
    (None, LogLevel.INFO),
])
def test_level_from_name(name, level):
    assert LogLevel.from_name(name) == level


def test_error_returns_code_and_records_details():
    logger = get_logger()
    try:
        raise RuntimeError("disk full")
    except RuntimeError as e:
        code = logger.error("WORKER", "Failed to save result", {"url": "https://youtu.be/x"}, exception=e)

    assert re.match(r'^WORKER-\d{5}-[0-9A-F]{4}$', code)
    details = logger.get_error_details(code)
    assert details['message'] == "Failed to save result"
    assert details['data']['exception_type'] == 'RuntimeError'
    assert details['data']['url'] == 'https://youtu.be/x'
    assert 'Traceback' in details['data']['traceback']
    assert any(c == code for c, _ in logger.get_recent_errors())


def test_errors_written_to_error_log():
    logger = get_logger()
    code = logger.error("BATCH", "Summary write failed")

    lines = logger.error_log_file.read_text(encoding='utf-8').splitlines()
    entries = [json.loads(line) for line in lines]
    assert any(e.get('error_code') == code and e['level'] == 'ERROR' for e in entries)


def test_level_filter_suppresses_debug():
    logger = get_logger()
    previous = logger.min_level
    logger.set_level(LogLevel.WARNING)
    try:
        logger.info("TEST", "should-not-appear-in-log")
    finally:
        logger.set_level(previous)

    if logger.current_log_file.exists():
        assert 'should-not-appear-in-log' not in logger.current_log_file.read_text(encoding='utf-8')


def test_item_event_failure_returns_worker_code():
    logger = get_logger()
    error = ValueError("bad transcript")
    code = logger.item_event("batch-1", "https://youtu.be/x", "Item failed at transcribe",
                             {"stage": "transcribe"}, level=LogLevel.ERROR, exception=error)

    assert code.startswith('WORKER-')
    data = logger.get_error_details(code)['data']
    assert data['batch_id'] == 'batch-1'
    assert data['url'] == 'https://youtu.be/x'
    assert data['stage'] == 'transcribe'
    assert data['exception_type'] == 'ValueError'


def test_item_event_info_returns_no_code():
    logger = get_logger()
    assert logger.item_event("batch-1", "https://youtu.be/x", "Item started") is None
