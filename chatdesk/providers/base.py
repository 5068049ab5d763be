# chatdesk/providers/base.py
# -*- coding: utf-8 -*-
"""
Provider adapter contract.

Every adapter turns the provider's own request/response shapes into the
small set of types below, so the routing services never branch on which
provider they are talking to beyond picking the adapter for a ProviderKind.
Adapters persist nothing.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping

import requests

log = logging.getLogger(__name__)


class ProviderKind(str, enum.Enum):
    """Which adapter serves a provider account. Set when the account is configured."""
    TWILIO = 'twilio'
    INFOBIP = 'infobip'


@dataclass(frozen=True)
class ProviderSettings:
    """Adapter configuration, built once from the Flask config and injected."""
    connect_timeout: float = 5.0
    read_timeout: float = 15.0
    twilio_api_base: str = 'https://api.twilio.com'

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'ProviderSettings':
        return cls(
            connect_timeout=float(config.get('PROVIDER_CONNECT_TIMEOUT_SECONDS', 5)),
            read_timeout=float(config.get('PROVIDER_TIMEOUT_SECONDS', 15)),
            twilio_api_base=str(config.get('TWILIO_API_BASE', 'https://api.twilio.com')).rstrip('/'),
        )

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


@dataclass(frozen=True)
class SendResult:
    """A send the provider accepted."""
    provider_message_id: str
    provider_status: str | None = None


@dataclass(frozen=True)
class ConnectionResult:
    ok: bool
    message: str


@dataclass(frozen=True)
class InboundEnvelope:
    """An inbound message decoded from a provider webhook."""
    from_address: str
    to_address: str
    body: str
    provider_message_id: str | None = None


@dataclass(frozen=True)
class StatusUpdate:
    """
    A delivery report decoded from a provider callback.
    `status` is one of our message statuses, or None when the provider state
    has no counterpart (queued, accepted, ...).
    """
    provider_message_id: str
    status: str | None
    provider_status: str | None = None
    error_detail: str | None = None


def as_text(value) -> str:
    """Coerce a webhook field to a stripped string ('' for missing)."""
    if value is None:
        return ''
    return str(value).strip()


class ProviderAdapter:
    """
    Base class for provider adapters.

    Subclasses implement send(), test_connection(), parse_inbound() and
    parse_status(), and list the credential keys they need in
    `required_credentials`.
    """
    kind: ProviderKind
    required_credentials: tuple[str, ...] = ()

    def __init__(self, settings: ProviderSettings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    def missing_credentials(self, credentials: Mapping[str, Any] | None) -> list[str]:
        """Return the required credential keys that are absent or blank."""
        credentials = credentials or {}
        return [key for key in self.required_credentials if not as_text(credentials.get(key))]

    def send(self, credentials: Mapping[str, Any], from_address: str, to_address: str, body: str) -> SendResult:
        """Send one message. Returns a SendResult or raises ProviderError/ProviderTimeout."""
        raise NotImplementedError

    def test_connection(self, credentials: Mapping[str, Any]) -> ConnectionResult:
        raise NotImplementedError

    def parse_inbound(self, payload: Mapping[str, Any]) -> list[InboundEnvelope]:
        raise NotImplementedError

    def parse_status(self, payload: Mapping[str, Any]) -> list[StatusUpdate]:
        raise NotImplementedError

    @staticmethod
    def _json(response: requests.Response) -> dict:
        """Decode a JSON body, tolerating providers that answer with text or HTML."""
        try:
            data = response.json()
        except ValueError:
            return {'_raw': response.text}
        return data if isinstance(data, dict) else {'_raw': data}
