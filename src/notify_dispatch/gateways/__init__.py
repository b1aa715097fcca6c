"""Channel gateways."""

from .in_app import InAppGateway
from .memory import InMemoryGateway, SentMessage
from .push import FcmPushGateway
from .registry import ChannelGatewayRegistry
from .slack import SlackGateway
from .sms import HttpSmsGateway
from .smtp import SmtpEmailGateway
from .telegram import TelegramGateway
from .webhook import WebhookGateway, sign_payload, verify_signature

__all__ = [
    "ChannelGatewayRegistry",
    "FcmPushGateway",
    "HttpSmsGateway",
    "InAppGateway",
    "InMemoryGateway",
    "SentMessage",
    "SlackGateway",
    "SmtpEmailGateway",
    "TelegramGateway",
    "WebhookGateway",
    "sign_payload",
    "verify_signature",
]
