from unittest.mock import patch

from starlette.requests import Request

from url2img.core.middleware import get_real_client_ip


def make_request(headers=None, client=("10.0.0.5", 51234)):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/render",
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_direct_client_ip():
    assert get_real_client_ip(make_request()) == "10.0.0.5"


def test_forwarded_for_uses_leftmost_address():
    request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

    assert get_real_client_ip(request) == "203.0.113.7"


def test_proxy_headers_ignored_when_untrusted():
    request = make_request({"X-Real-IP": "203.0.113.7"})

    with patch("url2img.core.middleware.settings.trust_proxy_headers", False):
        assert get_real_client_ip(request) == "10.0.0.5"


def test_no_client():
    assert get_real_client_ip(make_request(client=None)) is None


def test_request_id_header_on_every_response(client):
    response = client.get("/health")

    assert response.headers["x-request-id"]
