# chatdesk/providers/__init__.py
# -*- coding: utf-8 -*-
"""
Provider adapter registry.

The registry is built once by the app factory from ProviderSettings and
stored in `app.extensions['provider_registry']`. Services look adapters up
by the ProviderKind recorded on the provider account.
"""
import requests
from flask import current_app

from chatdesk.providers.base import ProviderAdapter, ProviderKind, ProviderSettings
from chatdesk.providers.twilio import TwilioAdapter
from chatdesk.providers.infobip import InfobipAdapter

ADAPTER_CLASSES = {
    ProviderKind.TWILIO: TwilioAdapter,
    ProviderKind.INFOBIP: InfobipAdapter,
}


class ProviderRegistry:
    """Maps each ProviderKind to a configured adapter instance."""

    def __init__(self, settings: ProviderSettings, session: requests.Session | None = None):
        self.settings = settings
        self._adapters: dict[ProviderKind, ProviderAdapter] = {
            kind: adapter_cls(settings, session=session)
            for kind, adapter_cls in ADAPTER_CLASSES.items()
        }

    def register(self, kind: ProviderKind, adapter: ProviderAdapter) -> None:
        self._adapters[ProviderKind(kind)] = adapter

    def get(self, kind: ProviderKind | str) -> ProviderAdapter | None:
        try:
            return self._adapters.get(ProviderKind(kind))
        except ValueError:
            return None

    def kinds(self) -> list[ProviderKind]:
        return list(self._adapters)


def init_registry(app) -> ProviderRegistry:
    registry = ProviderRegistry(ProviderSettings.from_config(app.config))
    app.extensions['provider_registry'] = registry
    return registry


def get_registry() -> ProviderRegistry:
    return current_app.extensions['provider_registry']
