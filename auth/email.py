"""
auth/email.py -- Outgoing email capability.

AuthService only needs "send this HTML to that address". Delivery is a
deployment concern, so the service takes any object with a matching send()
method. LoggingEmailSender is the default: it writes the message to the log,
which is enough for local development (the reset link shows up in the
server output).
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("forum.email")


class EmailSender(Protocol):
    def send(self, to_address: str, html_body: str) -> None:
        """Deliver html_body to to_address. Raise on delivery failure."""
        ...


class LoggingEmailSender:
    def send(self, to_address: str, html_body: str) -> None:
        logger.info("Email to %s: %s", to_address, html_body)
