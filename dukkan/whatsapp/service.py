from __future__ import annotations

import logging

from dukkan.core.config import NOTIFICATIONS_PROVIDER
from dukkan.whatsapp.base import WhatsAppProvider
from dukkan.whatsapp.cloud_provider import CloudWhatsAppProvider
from dukkan.whatsapp.mock_provider import MockWhatsAppProvider

logger = logging.getLogger(__name__)


class WhatsAppService:
    def __init__(self, provider: WhatsAppProvider | None = None) -> None:
        self._provider = provider or self._default_provider()

    @staticmethod
    def _default_provider() -> WhatsAppProvider:
        if NOTIFICATIONS_PROVIDER == "cloud":
            return CloudWhatsAppProvider()
        return MockWhatsAppProvider()

    @property
    def provider(self) -> WhatsAppProvider:
        return self._provider

    def set_provider(self, provider: WhatsAppProvider) -> None:
        self._provider = provider


whatsapp_service = WhatsAppService()
