"""SMTP email gateway."""

from __future__ import annotations

import email.message
import email.policy
import email.utils
import logging

import aiosmtplib

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)


class SmtpEmailGateway(IChannelGateway):
    """
    Async SMTP email gateway using aiosmtplib.
    """

    def __init__(
        self,
        host: str,
        from_email: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.from_email = from_email
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(
        self, address: str, content: RenderedContent
    ) -> email.message.EmailMessage:
        message = email.message.EmailMessage(policy=email.policy.default)
        message["To"] = address
        message["From"] = self.from_email
        message["Subject"] = content.title
        message["Message-ID"] = email.utils.make_msgid()
        if content.html_body:
            message.set_content(content.body, subtype="plain", charset="utf-8")
            message.add_alternative(content.html_body, subtype="html", charset="utf-8")
        else:
            message.set_content(content.body, charset="utf-8")
        return message

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        if channel != NotificationChannel.EMAIL:
            raise ValueError(f"SmtpEmailGateway does not support {channel}")

        message = self.build_message(address, content)
        try:
            _, reply = await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"Failed to send email to {address}: {e}")
            return DeliveryOutcome.failed(str(e))

        logger.info(f"Email sent to {address} via SMTP")
        return DeliveryOutcome.sent(
            external_id=message["Message-ID"], response={"reply": reply}
        )
