"""Checkout correlation ids in log output.

A wizard binds its ``checkout_id`` when it mounts; every record logged
from that async context afterwards carries it, so one learner's checkout
can be followed through the wizard, the poller, and the orchestrator:

    2025-03-10 09:00:00 [CHK-1a2b3c4d] [lessonbook.payments.orchestrator] INFO: Payment pi_9 confirmed

``configure_logging`` installs the format and the filter on the root
handlers, so records from httpx and other libraries format too (they
show ``-`` when no checkout is bound).
"""

import logging
import uuid
from contextvars import ContextVar, Token

LOG_FORMAT = "%(asctime)s [%(checkout_id)s] [%(name)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
UNBOUND = "-"

_checkout_id: ContextVar[str] = ContextVar("checkout_id", default=UNBOUND)


def new_checkout_id() -> str:
    return f"CHK-{uuid.uuid4().hex[:8]}"


def set_checkout_id(checkout_id: str) -> Token:
    """Bind ``checkout_id`` to the current async context. Returns the reset token."""
    return _checkout_id.set(checkout_id)


def current_checkout_id() -> str:
    return _checkout_id.get()


class CheckoutIdFilter(logging.Filter):
    """Stamps ``record.checkout_id`` unless something upstream already did."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "checkout_id"):
            record.checkout_id = _checkout_id.get()  # type: ignore[attr-defined]
        return True


def configure_logging(level: str) -> None:
    """Root logging setup: level, correlation format, and the filter on every root handler."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CheckoutIdFilter) for f in handler.filters):
            handler.addFilter(CheckoutIdFilter())


def get_checkout_logger(name: str) -> logging.Logger:
    """Module logger whose records carry the checkout id whatever handler receives them."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CheckoutIdFilter) for f in logger.filters):
        logger.addFilter(CheckoutIdFilter())
    return logger
