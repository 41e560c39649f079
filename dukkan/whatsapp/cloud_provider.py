from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from dukkan.core.config import META_API_VERSION, META_WA_ACCESS_TOKEN, META_WA_PHONE_NUMBER_ID
from dukkan.whatsapp.base import WhatsAppProvider, WhatsAppSendResult

logger = logging.getLogger(__name__)


class CloudWhatsAppProvider(WhatsAppProvider):
    MAX_RETRIES = 3

    def __init__(
        self,
        access_token: str = META_WA_ACCESS_TOKEN,
        phone_number_id: str = META_WA_PHONE_NUMBER_ID,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._client = client

    def send_text(
        self,
        *,
        tenant_id: int,
        to_phone: str,
        text: str,
        context: dict[str, Any] | None = None,
    ) -> WhatsAppSendResult:
        if not self._access_token or not self._phone_number_id:
            return WhatsAppSendResult(status="failed", error="WhatsApp Cloud credentials are missing")

        url = f"https://graph.facebook.com/{META_API_VERSION}/{self._phone_number_id}/messages"
        headers = {"Authorization": f"Bearer {self._access_token}", "Content-Type": "application/json"}
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone.lstrip("+"),
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }

        last_error: str | None = None
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                response = self._post(url, headers=headers, payload=payload)
            except httpx.HTTPError as exc:
                last_error = str(exc)
                logger.warning(
                    "WhatsApp cloud request failed attempt=%s",
                    attempt,
                    extra={"tenant_id": tenant_id},
                )
                continue

            if 200 <= response.status_code < 300:
                provider_id = None
                try:
                    data = response.json()
                    provider_id = ((data.get("messages") or [{}])[0].get("id"))
                except json.JSONDecodeError:
                    data = {"raw": response.text}
                return WhatsAppSendResult(status="sent", provider_message_id=provider_id, response_payload=data)

            last_error = f"WhatsApp error {response.status_code}: {response.text}"
            if response.status_code < 500 and response.status_code != 429:
                break

        return WhatsAppSendResult(status="failed", error=last_error)

    def _post(self, url: str, *, headers: dict[str, str], payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return self._client.post(url, headers=headers, json=payload)
        with httpx.Client(timeout=20.0) as client:
            return client.post(url, headers=headers, json=payload)
