"""
agency_services.notifications -- Transactional email delivery.

Responsibility:
    Build the account-credentials email and deliver it through the Resend
    HTTP API.  Delivery failures raise ``EmailDeliveryError`` so that the
    caller can roll back the unit of work that required the email.

Architecture position:
    Services layer.  Used by ``agency_modules.employees`` during employee
    provisioning.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from agency_kernel.exceptions import EmailDeliveryError
from agency_kernel.logging_config import get_logger

logger = get_logger("services.notifications")

RESEND_API_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> None:
        ...


class ResendEmailSender:
    """Posts messages to the Resend ``/emails`` endpoint."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        api_url: str = RESEND_API_URL,
        timeout: float = 10.0,
        http: Any = None,
    ):
        self._api_key = api_key
        self._from = from_address
        self._api_url = api_url
        self._timeout = timeout
        self._http = http if http is not None else requests

    @classmethod
    def from_config(cls, email_config, http: Any = None) -> ResendEmailSender:
        return cls(
            api_key=email_config.api_key,
            from_address=email_config.from_address,
            api_url=email_config.api_url,
            timeout=email_config.timeout_seconds,
            http=http,
        )

    def send(self, message: EmailMessage) -> None:
        if not self._api_key:
            raise EmailDeliveryError(message.to, "email API key is not configured")

        payload = {
            "from": self._from,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            response = self._http.post(
                self._api_url, json=payload, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
        except requests.Timeout as exc:
            logger.error(
                "email_delivery_failed",
                extra={"recipient": message.to, "reason": "timeout"},
            )
            raise EmailDeliveryError(message.to, "request timed out") from exc
        except requests.RequestException as exc:
            logger.error(
                "email_delivery_failed",
                extra={"recipient": message.to, "reason": str(exc)},
            )
            raise EmailDeliveryError(message.to, str(exc)) from exc

        logger.info(
            "email_sent",
            extra={"recipient": message.to, "subject": message.subject},
        )


def greeting_name(full_name: str | None) -> str:
    """First word of the name, capitalised; ``"there"`` when empty."""
    parts = (full_name or "").split()
    first = parts[0] if parts else "there"
    return first[:1].upper() + first[1:].lower()


def account_created_email(
    name: str | None,
    email: str,
    temp_password: str,
    company_name: str = "Glitci",
) -> EmailMessage:
    """Welcome email carrying the temporary credentials."""
    company = html.escape(company_name)
    body = (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px;\">"
        f"<h2>Welcome to {company}, {html.escape(greeting_name(name))}!</h2>"
        "<p>Your account has been created. Use the credentials below to sign in:</p>"
        f"<p><strong>Email:</strong> {html.escape(email)}<br>"
        f"<strong>Temporary password:</strong> {html.escape(temp_password)}</p>"
        "<p>You will be asked to choose a new password after your first login.</p>"
        f"<p>The {company} Team</p>"
        "</div>"
    )
    return EmailMessage(
        to=email,
        subject=f"Welcome to {company_name} - Your Account Credentials",
        html=body,
    )
