"""mail/ -- Outbound email collaborator.

AccountService depends only on the EmailService protocol. Which backend runs
(log or SMTP) is a configuration decision made in build_email_service().

Layer rule: mail/ imports only core/ + stdlib. It does NOT import from
accounts/, store/, or api/.
"""

from mail.errors import EmailDeliveryError
from mail.service import EmailMessage, EmailService, LogEmailService, SmtpEmailService, build_email_service

__all__ = [
    "EmailDeliveryError",
    "EmailMessage",
    "EmailService",
    "LogEmailService",
    "SmtpEmailService",
    "build_email_service",
]
