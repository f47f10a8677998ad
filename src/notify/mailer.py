# ========================
# src/notify/mailer.py
# ========================

"""
Templated Mail Dispatch

Sends one rendered message to every subscriber of a list. Templates use
`$field` placeholders filled from the subscriber's columns plus `$list_id`.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from string import Template
from typing import Any, Dict, List, Mapping, Tuple

from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """A mail provider refused or failed to accept a message."""


def render_template(template: str, subscriber: Mapping[str, Any], list_id: str) -> str:
    """Fill `$field` placeholders; unknown placeholders are left as they are."""
    values = {key: '' if value is None else str(value) for key, value in subscriber.items()}
    values['list_id'] = list_id
    return Template(template).safe_substitute(values)


class MailSender(ABC):
    """Delivers a single message."""

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class LoggingMailSender(MailSender):
    """Logs messages instead of delivering them. Keeps what it sent in `outbox`."""

    def __init__(self):
        self.outbox: List[Tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.outbox.append((to, subject, body))
        logger.info(f"Mail to {to}: {subject}")


class SMTPMailSender(MailSender):
    """Delivers messages through an SMTP relay."""

    def __init__(self, host: str = "localhost", port: int = 25, sender: str = "no-reply@localhost"):
        self.host = host
        self.port = port
        self.sender = sender

    async def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        message.set_content(body)
        await asyncio.to_thread(self._deliver, message)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            smtp.send_message(message)


class SendGridMailSender(MailSender):
    """Delivers messages through the SendGrid API."""

    ACCEPTED = (200, 201, 202)

    def __init__(self, api_key: str, sender: str):
        self.client = SendGridAPIClient(api_key=api_key)
        self.sender = sender

    async def send(self, to: str, subject: str, body: str) -> None:
        message = Mail(from_email=Email(self.sender), to_emails=To(to), subject=subject)
        message.add_content(Content("text/plain", body))
        try:
            response = await asyncio.to_thread(self.client.send, message)
        except HTTPError as e:
            raise MailDeliveryError(f"SendGrid rejected mail to {to}: {e}") from e

        if response.status_code not in self.ACCEPTED:
            raise MailDeliveryError(f"SendGrid returned status {response.status_code} for {to}")
        logger.debug(f"Mail to {to} accepted by SendGrid (status {response.status_code})")


def create_sender(config) -> MailSender:
    """Build the sender selected by `config.MAIL_BACKEND`."""
    backend = config.MAIL_BACKEND.lower()
    if backend == 'log':
        return LoggingMailSender()
    if backend == 'smtp':
        return SMTPMailSender(config.SMTP_HOST, config.SMTP_PORT, config.MAIL_FROM)
    if backend == 'sendgrid':
        if not config.SENDGRID_API_KEY:
            raise ValueError("SENDGRID_API_KEY is required for the sendgrid mail backend")
        return SendGridMailSender(config.SENDGRID_API_KEY, config.SENDGRID_FROM_EMAIL)
    raise ValueError(f"Unknown mail backend: {config.MAIL_BACKEND}")


class MailDispatcher:
    """
    Renders a template per subscriber and sends all messages concurrently.
    A failed delivery is logged and counted; it never stops the others.
    """

    def __init__(self, sender: MailSender, subject_template: str = "A message for $name"):
        self.sender = sender
        self.subject_template = subject_template

    async def send_to_list(self, store, list_id: str, template: str) -> Dict[str, int]:
        """
        Send the template to every subscriber of a list.

        Args:
            store (ListStore): Contact store
            list_id (str): Target list id
            template (str): Message body template

        Returns:
            dict: Counts of `sent` and `failed` messages
        """
        subscribers = await store.find_subscribers(list_id)
        results = await asyncio.gather(
            *(self._send_one(subscriber, list_id, template) for subscriber in subscribers)
        )
        sent = sum(1 for ok in results if ok)
        logger.info(f"Mail dispatch for list {list_id}: {sent} sent, {len(results) - sent} failed")
        return {'sent': sent, 'failed': len(results) - sent}

    async def _send_one(self, subscriber: Mapping[str, Any], list_id: str, template: str) -> bool:
        to = subscriber.get('email', '')
        try:
            await self.sender.send(
                to,
                render_template(self.subject_template, subscriber, list_id),
                render_template(template, subscriber, list_id),
            )
        except (smtplib.SMTPException, OSError, MailDeliveryError) as e:
            logger.warning(f"Failed to send mail to {to}: {e}")
            return False
        return True
