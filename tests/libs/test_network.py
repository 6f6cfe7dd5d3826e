from __future__ import annotations

from starlette.requests import Request

from libs.network import FALLBACK_CLIENT_IP, get_client_ip


def _request(headers=None, client=None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_first_forwarded_entry_wins():
    request = _request({"X-Forwarded-For": "203.0.113.4, 10.0.0.2"}, client=("10.0.0.3", 5000))
    assert get_client_ip(request) == "203.0.113.4"


def test_peer_address_without_forwarding_header():
    assert get_client_ip(_request(client=("192.0.2.10", 5000))) == "192.0.2.10"


def test_fallback_when_nothing_is_known():
    assert get_client_ip(_request()) == FALLBACK_CLIENT_IP
