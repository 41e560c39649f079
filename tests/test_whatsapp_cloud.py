import json

import httpx

from dukkan.whatsapp.base import sanitize_payload
from dukkan.whatsapp.cloud_provider import CloudWhatsAppProvider


def _provider(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CloudWhatsAppProvider("token-123", "555000", client=client)


def test_send_text_posts_to_graph_api():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    result = _provider(handler).send_text(tenant_id=1, to_phone="+201000000001", text="hello")

    assert result.ok
    assert result.provider_message_id == "wamid.1"
    request = requests[0]
    assert request.url.path.endswith("/555000/messages")
    assert request.headers["Authorization"] == "Bearer token-123"
    body = json.loads(request.content)
    assert body["to"] == "201000000001"
    assert body["text"]["body"] == "hello"


def test_server_errors_are_retried_then_reported():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="unavailable")

    result = _provider(handler).send_text(tenant_id=1, to_phone="+201000000001", text="hello")

    assert len(calls) == CloudWhatsAppProvider.MAX_RETRIES
    assert result.status == "failed"
    assert "503" in result.error


def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "bad number"}})

    result = _provider(handler).send_text(tenant_id=1, to_phone="+20", text="hello")

    assert len(calls) == 1
    assert not result.ok


def test_missing_credentials_fail_without_a_request():
    def handler(request):
        raise AssertionError("no request expected")

    provider = CloudWhatsAppProvider("", "", client=httpx.Client(transport=httpx.MockTransport(handler)))

    result = provider.send_text(tenant_id=1, to_phone="+201000000001", text="hello")

    assert result.status == "failed"


def test_sanitize_payload_masks_tokens():
    payload = {"order_id": 4, "public_token": "abcdef123456", "nested": [{"token": "xyz"}]}

    assert sanitize_payload(payload) == {
        "order_id": 4,
        "public_token": "****3456",
        "nested": [{"token": "****"}],
    }
