"""Messaging channel adapters."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol
from urllib.parse import quote

import requests
from requests import RequestException

from feepulse.errors import ChannelError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://graph.facebook.com/v17.0"


@dataclass
class ChannelResponse:
    delivered: bool
    id: str | None = None
    error: str | None = None
    deep_link: str | None = None


class Channel(Protocol):
    def send(self, phone: str, text: str) -> ChannelResponse:
        """Deliver text to an E.164 number (digits only, country code included)."""
        ...


def build_deep_link(phone: str, text: str) -> str:
    return f"https://wa.me/{phone}?text={quote(text, safe='')}"


@dataclass
class WhatsAppCloudChannel:
    phone_number_id: str
    access_token: str
    api_url: str = DEFAULT_API_URL
    timeout_seconds: int = 30

    def send(self, phone: str, text: str) -> ChannelResponse:
        url = f"{self.api_url.rstrip('/')}/{self.phone_number_id}/messages"
        payload = {"messaging_product": "whatsapp", "to": phone, "text": {"body": text}}
        headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout_seconds)
            response.raise_for_status()
        except RequestException as exc:
            raise ChannelError(f"WhatsApp Cloud API request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ChannelError("Invalid response from WhatsApp Cloud API.") from exc

        try:
            message_id = data["messages"][0]["id"]
        except (KeyError, IndexError, TypeError):
            return ChannelResponse(delivered=False, error="response did not include a message id")
        logger.debug("WhatsApp message %s accepted for %s", message_id, phone)
        return ChannelResponse(delivered=True, id=str(message_id))


@dataclass
class DeepLinkChannel:
    """Produce wa.me links for a person to open instead of sending directly."""

    opener: Optional[Callable[[str], Any]] = None
    links: List[str] = field(default_factory=list)

    def send(self, phone: str, text: str) -> ChannelResponse:
        link = build_deep_link(phone, text)
        self.links.append(link)
        if self.opener is not None:
            self.opener(link)
        return ChannelResponse(delivered=True, deep_link=link)


def build_channel(cfg: Dict[str, Any]) -> WhatsAppCloudChannel | DeepLinkChannel:
    reminders_cfg = cfg.get("reminders") or {}
    channel_cfg = reminders_cfg.get("channel") or {}
    provider = str(channel_cfg.get("provider", "deeplink")).lower()

    if provider in {"deeplink", "deep_link", "manual"}:
        return DeepLinkChannel()

    if provider in {"whatsapp_cloud", "whatsapp", "cloud"}:
        phone_number_id = channel_cfg.get("phone_number_id")
        token_env = channel_cfg.get("access_token_env", "WHATSAPP_ACCESS_TOKEN")
        access_token = channel_cfg.get("access_token") or os.environ.get(token_env)
        if not phone_number_id:
            raise ValueError("reminders.channel.phone_number_id is required for WhatsApp Cloud.")
        if not access_token:
            raise ValueError(f"WhatsApp access token missing; set {token_env}.")
        return WhatsAppCloudChannel(
            phone_number_id=str(phone_number_id),
            access_token=str(access_token),
            api_url=channel_cfg.get("api_url", DEFAULT_API_URL),
            timeout_seconds=int(channel_cfg.get("timeout_seconds", 30)),
        )

    raise ValueError(f"Unsupported reminder channel provider: {provider}")
