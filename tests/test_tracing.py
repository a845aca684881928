import logging
import logging.handlers

import pytest

from urlfixer.rewrite import RewriteDecision
from urlfixer.tracing import log_decision, start_queue_logging


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def restore_logger():
    logger = logging.getLogger("urlfixer")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_queue_logging_delivers_decisions(restore_logger):
    handler = ListHandler()
    listener = start_queue_logging(handler, level=logging.INFO)
    try:
        log_decision(RewriteDecision("http://a.com/", "https://x.example.com/", "generic"))
        log_decision(RewriteDecision("http://b.com/", "http://b.com/", "override", "b.com/*"))
    finally:
        listener.stop()
    messages = [r.getMessage() for r in handler.records]
    assert {r.name for r in handler.records} == {"urlfixer.tracing"}
    assert messages == [
        "branch=generic url=http://a.com/ result=https://x.example.com/",
        "branch=override rule=b.com/* url=http://b.com/ result=http://b.com/",
    ]


def test_queue_handler_is_not_duplicated(restore_logger):
    start_queue_logging(ListHandler()).stop()
    start_queue_logging(ListHandler()).stop()
    queue_handlers = [
        h for h in logging.getLogger("urlfixer").handlers if isinstance(h, logging.handlers.QueueHandler)
    ]
    assert len(queue_handlers) == 1


def test_decision_changed():
    assert RewriteDecision("a", "b", "generic").changed
    assert not RewriteDecision("a", "a", "unchanged").changed
