"""mail/errors.py -- Delivery failures, whatever the backend."""


class EmailDeliveryError(Exception):
    """The message could not be handed to the mail transport."""

    def __init__(self, to: str, reason: str) -> None:
        self.to = to
        self.reason = reason
        super().__init__(f"Could not deliver email to {to}: {reason}")
