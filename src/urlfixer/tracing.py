"""Non-blocking diagnostic logging for rewrite decisions.

Log records from the ``urlfixer`` loggers are put on an in-memory queue and
written by a background listener thread, so rewrites never wait on I/O.
"""

import logging
import logging.handlers
import queue
from typing import Optional

from urlfixer.rewrite import RewriteDecision

LOG = logging.getLogger("urlfixer.tracing")


def start_queue_logging(
    handler: Optional[logging.Handler] = None,
    level: int = logging.DEBUG,
    logger_name: str = "urlfixer",
) -> logging.handlers.QueueListener:
    """Route ``logger_name`` through a queue; call ``.stop()`` on the result to flush."""
    if handler is None:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
    q: queue.SimpleQueue = queue.SimpleQueue()
    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        if isinstance(existing, logging.handlers.QueueHandler):
            logger.removeHandler(existing)
    logger.addHandler(logging.handlers.QueueHandler(q))
    logger.setLevel(level)
    logger.propagate = False
    listener = logging.handlers.QueueListener(q, handler, respect_handler_level=True)
    listener.start()
    return listener


def log_decision(decision: RewriteDecision) -> None:
    """Trace callback logging each decision at INFO."""
    if decision.rule is not None:
        LOG.info(
            "branch=%s rule=%s url=%s result=%s",
            decision.branch,
            decision.rule,
            decision.original,
            decision.result,
        )
    else:
        LOG.info("branch=%s url=%s result=%s", decision.branch, decision.original, decision.result)
