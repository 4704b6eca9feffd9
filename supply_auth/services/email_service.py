"""Notification dispatch: email via SendGrid plus a best-effort queue."""

import html
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from supply_auth.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """Out-of-band message: where it goes, which template, and the template data."""

    destination: str
    template: str
    data: dict = field(default_factory=dict)


class NotificationDispatcher(ABC):
    """Delivers a notification. Returns True only when the provider accepted it."""

    @abstractmethod
    def send(self, notification: Notification) -> bool: ...


class NotificationQueue(ABC):
    """Fire-and-forget delivery for notices whose failure must not fail the caller."""

    @abstractmethod
    def enqueue(self, notification: Notification) -> None: ...


def deliver_best_effort(dispatcher: NotificationDispatcher, notification: Notification) -> None:
    """Background task body: send and log the outcome, never raise."""
    try:
        delivered = dispatcher.send(notification)
    except Exception:
        logger.exception(f"Background notification '{notification.template}' crashed")
        return
    if not delivered:
        logger.warning(
            f"Background notification '{notification.template}' to {notification.destination} not delivered"
        )


def _render_email_otp(data: dict) -> tuple[str, str]:
    subject = f"Your {data['app_name']} verification code"
    body = f"""
    <h2>Your Verification Code</h2>
    <p>Hello {data.get('name') or ''},</p>
    <p>Your verification code is:</p>
    <h1 style="font-size: 32px; letter-spacing: 8px; font-family: monospace;">{data['otp']}</h1>
    <p>This code expires in {data['expires_in']} minutes.</p>
    <p>If you didn't request this, contact {data['support_email']} immediately.</p>
    """
    return subject, body


def _render_welcome(data: dict) -> tuple[str, str]:
    subject = f"Welcome to {data['app_name']}!"
    body = f"""
    <h2>Welcome to {data['app_name']}!</h2>
    <p>Hello {data.get('name') or ''}, your account is ready.</p>
    """
    return subject, body


def _render_two_factor_disabled(data: dict) -> tuple[str, str]:
    subject = f"Two-factor authentication disabled - {data['app_name']}"
    body = f"""
    <h2>Two-Factor Authentication Disabled</h2>
    <p>Two-factor authentication has been disabled on your account.</p>
    <p>If you didn't make this change, please contact {data['support_email']} immediately.</p>
    """
    return subject, body


def _render_password_changed(data: dict) -> tuple[str, str]:
    subject = f"Your password was changed - {data['app_name']}"
    body = f"""
    <h2>Password Changed</h2>
    <p>Your password was successfully changed and other sessions were signed out.</p>
    <p>If you didn't make this change, please contact {data['support_email']} immediately.</p>
    """
    return subject, body


TEMPLATES = {
    "email_otp": _render_email_otp,
    "welcome": _render_welcome,
    "two_factor_disabled": _render_two_factor_disabled,
    "password_changed": _render_password_changed,
}


class SendGridDispatcher(NotificationDispatcher):
    """Service for sending transactional emails via SendGrid."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def render(self, notification: Notification) -> tuple[str, str]:
        """Subject and HTML body for a notification."""
        renderer = TEMPLATES.get(notification.template)
        if renderer is None:
            raise ValueError(f"Unknown email template: {notification.template}")
        data = {
            "app_name": self._settings.app_name,
            "support_email": self._settings.support_email,
            **notification.data,
        }
        # Names come from sign-up forms and provider profiles
        escaped = {k: html.escape(v) if isinstance(v, str) else v for k, v in data.items()}
        return renderer(escaped)

    def send(self, notification: Notification) -> bool:
        """Send email via SendGrid. Returns True if successful."""
        if not self._settings.sendgrid_api_key:
            logger.warning("SendGrid API key not configured, skipping email send")
            return False

        subject, html_content = self.render(notification)
        message = Mail(
            from_email=(self._settings.email_from_address, self._settings.email_from_name),
            to_emails=notification.destination,
            subject=subject,
            html_content=html_content,
        )

        try:
            sg = SendGridAPIClient(self._settings.sendgrid_api_key)
            response = sg.send(message)
            logger.info(
                f"Email '{notification.template}' sent to {notification.destination}, "
                f"status: {response.status_code}"
            )
            return response.status_code in (200, 201, 202)
        except Exception:
            logger.exception(f"Failed to send email to {notification.destination}")
            return False
