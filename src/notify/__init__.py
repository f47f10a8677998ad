# ========================
# src/notify/__init__.py
# ========================

"""
Notification Package

Templated mail dispatch to list subscribers.
"""

from .mailer import (
    LoggingMailSender,
    MailDeliveryError,
    MailDispatcher,
    MailSender,
    SMTPMailSender,
    SendGridMailSender,
    create_sender,
    render_template,
)

__all__ = [
    'LoggingMailSender',
    'MailDeliveryError',
    'MailDispatcher',
    'MailSender',
    'SMTPMailSender',
    'SendGridMailSender',
    'create_sender',
    'render_template',
]
