"""tests/support.py -- Test doubles and constants shared by conftest and test modules."""

from __future__ import annotations

from mail.errors import EmailDeliveryError
from mail.service import EmailMessage

MEMORY_URL = "sqlite+aiosqlite:///:memory:"
# Lowest cost bcrypt accepts; keeps the suite fast.
TEST_ROUNDS = 4


class RecordingEmailService:
    """EmailService double. Set fail=True to make every send raise."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = fail

    async def send_email(self, message: EmailMessage) -> None:
        if self.fail:
            raise EmailDeliveryError(message.to, "relay refused")
        self.sent.append(message)
