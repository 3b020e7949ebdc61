"""
Outbound email with provider fallback.
Providers are tried in a fixed order (Resend, SendGrid, Mailgun); only those
whose credentials are all present take part. The first one that accepts the
message wins, and every failure before it is kept for diagnostics.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import requests
import resend

from lhyst.core import config

logger = logging.getLogger(__name__)

NO_PROVIDER_NOTE = "no provider configured"
ALL_FAILED_PREFIX = "all providers failed: "

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
MAILGUN_URL = "https://api.mailgun.net/v3/{domain}/messages"
DEFAULT_SENDER_NAME = "Lhyst"


class ProviderError(Exception):
    """A single provider refused or failed to send the message."""


@dataclass
class EmailMessage:
    to: str
    subject: str
    text: str
    html: Optional[str] = None
    reply_to: Optional[str] = None
    sender_name: Optional[str] = None


@dataclass
class DeliveryOutcome:
    sent: bool
    provider: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    no_provider: bool = False

    @property
    def note(self) -> Optional[str]:
        if self.sent:
            return None
        if self.no_provider:
            return NO_PROVIDER_NOTE
        return ALL_FAILED_PREFIX + " | ".join(self.errors)


class ResendProvider:
    name = "Resend"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def send(self, message: EmailMessage, sender: str) -> None:
        resend.api_key = self.api_key
        params = {
            "from": sender,
            "to": [message.to],
            "subject": message.subject,
            "text": message.text,
        }
        if message.html:
            params["html"] = message.html
        if message.reply_to:
            params["reply_to"] = [message.reply_to]
        try:
            resend.Emails.send(params)
        except Exception as e:
            raise ProviderError(str(e))


class SendGridProvider:
    name = "SendGrid"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def send(self, message: EmailMessage, sender: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": message.to}], "subject": message.subject}],
            "from": {"email": sender, "name": message.sender_name or DEFAULT_SENDER_NAME},
            "content": [{"type": "text/plain", "value": message.text}],
        }
        if message.reply_to:
            payload["reply_to"] = {"email": message.reply_to}
        try:
            response = requests.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            )
        except requests.exceptions.RequestException as e:
            raise ProviderError(str(e))
        if not 200 <= response.status_code < 300:
            raise ProviderError(response.text or f"HTTP {response.status_code}")


class MailgunProvider:
    name = "Mailgun"

    def __init__(self, api_key: str, domain: str):
        self.api_key = api_key
        self.domain = domain

    def send(self, message: EmailMessage, sender: str) -> None:
        form = {
            "from": sender,
            "to": message.to,
            "subject": message.subject,
            "text": message.text,
        }
        if message.reply_to:
            form["h:Reply-To"] = message.reply_to
        try:
            response = requests.post(
                MAILGUN_URL.format(domain=self.domain),
                auth=("api", self.api_key),
                data=form,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderError(str(e))
        if not response.ok:
            raise ProviderError(response.text or f"HTTP {response.status_code}")


def configured_providers() -> list:
    """Providers with a complete credential set, in priority order."""
    providers = []
    resend_key = config.resend_api_key()
    if resend_key:
        providers.append(ResendProvider(resend_key))
    sendgrid_key = config.sendgrid_api_key()
    if sendgrid_key:
        providers.append(SendGridProvider(sendgrid_key))
    mailgun_key, mailgun_domain = config.mailgun_api_key(), config.mailgun_domain()
    if mailgun_key and mailgun_domain:
        providers.append(MailgunProvider(mailgun_key, mailgun_domain))
    return providers


class Mailer:
    def __init__(self, providers: Sequence, sender: Optional[str]):
        self.providers = list(providers)
        self.sender = sender

    def send(self, message: EmailMessage, sender: Optional[str] = None) -> DeliveryOutcome:
        sender = sender or self.sender
        if not self.providers:
            logger.warning("[MAIL] No email provider configured; message to %s not sent", message.to)
            return DeliveryOutcome(sent=False, no_provider=True)

        errors = []
        for provider in self.providers:
            try:
                provider.send(message, sender)
            except ProviderError as e:
                logger.warning("[MAIL] %s failed for %s: %s", provider.name, message.to, e)
                errors.append(f"{provider.name} error: {e}")
                continue
            logger.info("[MAIL] Sent '%s' to %s via %s", message.subject, message.to, provider.name)
            return DeliveryOutcome(sent=True, provider=provider.name, errors=errors)

        return DeliveryOutcome(sent=False, errors=errors)


def get_mailer() -> Mailer:
    return Mailer(configured_providers(), config.sender_address())
