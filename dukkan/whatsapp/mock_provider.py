from __future__ import annotations

import logging
import threading
import uuid
from typing import Any

from dukkan.whatsapp.base import WhatsAppProvider, WhatsAppSendResult, sanitize_payload

logger = logging.getLogger(__name__)


class MockWhatsAppProvider(WhatsAppProvider):
    """Logs outbound messages instead of sending them; keeps them in ``sent``."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def send_text(
        self,
        *,
        tenant_id: int,
        to_phone: str,
        text: str,
        context: dict[str, Any] | None = None,
    ) -> WhatsAppSendResult:
        message = {
            "tenant_id": tenant_id,
            "to": to_phone,
            "text": text,
            "context": context or {},
        }
        with self._lock:
            self.sent.append(message)
        logger.info("WhatsApp mock outbound to=%s context=%s", to_phone, sanitize_payload(context or {}))
        return WhatsAppSendResult(status="sent", provider_message_id=f"mock-{uuid.uuid4().hex[:10]}")

    def clear(self) -> None:
        with self._lock:
            self.sent.clear()
