# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import pytest

from courier.errors import (
    GENERIC_TRANSPORT_MESSAGE,
    InvalidURLError,
    ResponseStreamError,
    StatusCodeError,
    TransportError,
)
from courier.http.adapters import StubResponse, StubSocketTransport
from courier.http.client import RawExchange
from courier.http.transport import RedirectVisitTable, Transport, request

A = "https://a.example.com/start"
B = "https://b.example.com/landing"


def test_invalid_options_fail_before_transport():
    stub = StubSocketTransport()
    with pytest.raises(InvalidURLError):
        Transport({"method": "GET"}, socket_transport=stub)
    assert stub.requests == []


def test_non_redirect_response_settles_immediately():
    stub = StubSocketTransport({A: StubResponse(200, body={"hello": "world"})})
    transport = Transport({"url": A}, socket_transport=stub)
    response = transport.send()
    assert response.status_code == 200
    assert response.body == {"hello": "world"}
    assert len(stub.requests) == 1


def test_redirect_is_followed_to_final_response():
    stub = StubSocketTransport(
        {
            A: StubResponse(302, "Found", headers={"Location": B}),
            B: StubResponse(200, body="done"),
        }
    )
    response = Transport({"url": A}, socket_transport=stub).send()
    assert response.status_code == 200
    assert response.body == "done"
    assert [str(spec.url) for spec in stub.requests] == [A, B]


def test_self_redirect_is_followed_once_then_settles():
    stub = StubSocketTransport({A: StubResponse(301, "Moved Permanently", headers={"Location": A})})
    transport = Transport({"url": A}, socket_transport=stub)
    response = transport.send()
    assert response.status_code == 301
    assert len(stub.requests) == 2
    assert transport.redirects.count(A) == 3


def test_loop_between_two_urls_stops_on_revisit():
    stub = StubSocketTransport(
        {
            A: StubResponse(302, headers={"Location": B}),
            B: StubResponse(302, headers={"Location": A}),
        }
    )
    response = Transport({"url": A}, socket_transport=stub).send()
    assert response.status_code == 302
    assert [spec.hostname for spec in stub.requests] == ["a.example.com", "b.example.com", "a.example.com"]


def test_equal_urls_with_different_spelling_share_a_visit_count():
    stub = StubSocketTransport({A: StubResponse(301, headers={"Location": "HTTPS://A.EXAMPLE.COM:443/start#frag"})})
    response = Transport({"url": A}, socket_transport=stub).send()
    assert response.status_code == 301
    assert len(stub.requests) == 2


def test_redirect_without_location_settles():
    stub = StubSocketTransport({A: StubResponse(304, "Not Modified")})
    response = Transport({"url": A}, socket_transport=stub).send()
    assert response.status_code == 304
    assert len(stub.requests) == 1


def test_relative_location_resolves_against_current_url():
    stub = StubSocketTransport(
        {
            A: StubResponse(307, headers={"location": "../next?x=1"}),
            "https://a.example.com/next?x=1": StubResponse(200, body="relative ok"),
        }
    )
    response = Transport({"url": A}, socket_transport=stub).send()
    assert response.body == "relative ok"
    assert stub.requests[1].path == "/next?x=1"


def test_redirect_reuses_method_headers_and_body():
    stub = StubSocketTransport(
        {
            A: StubResponse(307, headers={"Location": B}),
            B: StubResponse(200),
        }
    )
    transport = Transport(
        {"url": A, "method": "PUT", "headers": {"X-Trace": "t1"}, "body": {"k": "v"}},
        socket_transport=stub,
    )
    transport.send()
    first, second = stub.requests
    assert second.method == "PUT"
    assert second.body == first.body == b'{"k":"v"}'
    assert second.headers.entries() == first.headers.entries()
    assert transport.spec.hostname == "b.example.com"


def test_unusable_location_settles_with_redirect_response():
    stub = StubSocketTransport({A: StubResponse(302, headers={"Location": "mailto:someone@example.com"})})
    response = Transport({"url": A}, socket_transport=stub).send()
    assert response.status_code == 302
    assert len(stub.requests) == 1


def test_transport_error_fails_the_whole_chain():
    stub = StubSocketTransport(
        {
            A: StubResponse(302, headers={"Location": B}),
            B: StubResponse(transport_error=TransportError("connection refused")),
        }
    )
    with pytest.raises(TransportError, match="connection refused"):
        Transport({"url": A}, socket_transport=stub).send()


def test_foreign_transport_exception_is_wrapped():
    class ExplodingTransport:
        def open(self, spec):  # noqa: ARG002
            raise OSError()

        def close(self):
            return None

    with pytest.raises(TransportError, match=GENERIC_TRANSPORT_MESSAGE):
        Transport({"url": A}, socket_transport=ExplodingTransport()).send()


def test_stream_error_fails_the_request():
    stub = StubSocketTransport({A: StubResponse(200, body=b"partial", stream_error=ConnectionResetError("reset"))})
    with pytest.raises(ResponseStreamError, match="reset"):
        Transport({"url": A}, socket_transport=stub).send()


def test_exchange_close_is_called():
    closed = []

    class ClosingTransport:
        def open(self, spec):
            return RawExchange(status_code=200, url=str(spec.url), stream=[b"x"], close=lambda: closed.append(True))

        def close(self):
            return None

    Transport({"url": A}, socket_transport=ClosingTransport()).send()
    assert closed == [True]


def test_visit_table_seeds_origin_and_counts_canonical_urls():
    table = RedirectVisitTable("https://Example.com")
    assert table.count("https://example.com/") == 1
    assert table.visit("https://example.com:443/") == 2
    assert table.count("http://example.com/") == 0
    assert len(table) == 1


def test_to_dict_includes_request_and_response():
    stub = StubSocketTransport({A: StubResponse(200, body={"a": 1})})
    transport = Transport({"url": A, "passphrase": "hidden"}, socket_transport=stub)
    assert transport.to_dict()["response"] is None
    transport.send()
    data = transport.to_dict()
    assert data["request"]["passphrase"] is True
    assert data["response"]["body"] == {"a": 1}


def test_request_returns_full_response_by_default():
    stub = StubSocketTransport({A: StubResponse(404, "Not Found", body="missing")})
    response = request({"url": A}, socket_transport=stub)
    assert response.status_code == 404


def test_request_can_resolve_with_body_only():
    stub = StubSocketTransport({A: StubResponse(200, body={"value": 3})})
    assert request({"url": A, "resolveWithFullResponse": False}, socket_transport=stub) == {"value": 3}


def test_request_simple_raises_on_error_status():
    stub = StubSocketTransport({A: StubResponse(500, "Internal Server Error", body="boom")})
    with pytest.raises(StatusCodeError) as info:
        request({"url": A, "simple": True}, socket_transport=stub)
    assert info.value.status_code == 500
    assert info.value.response.body == "boom"


def test_non_origin_url_is_followed_only_once():
    C = "https://c.example.com/hop"
    stub = StubSocketTransport(
        {
            A: StubResponse(302, headers={"Location": B}),
            B: StubResponse(302, headers={"Location": C}),
            C: StubResponse(302, headers={"Location": B}),
        }
    )
    transport = Transport({"url": A}, socket_transport=stub)
    response = transport.send()
    assert response.status_code == 302
    assert [spec.hostname for spec in stub.requests] == ["a.example.com", "b.example.com", "c.example.com"]
    assert transport.redirects.count(B) == 2


def test_visit_table_allows_origin_one_extra_hop():
    table = RedirectVisitTable(A)
    assert table.allows(B) is True
    assert table.allows(B) is False
    assert table.allows(A) is True
    assert table.allows(A) is False


def test_second_send_restarts_from_the_origin():
    stub = StubSocketTransport(
        {
            A: StubResponse(302, headers={"Location": B}),
            B: StubResponse(200, body="landed"),
        }
    )
    transport = Transport({"url": A}, socket_transport=stub)
    first = transport.send()
    second = transport.send()
    assert first.body == second.body == "landed"
    assert [spec.hostname for spec in stub.requests] == ["a.example.com", "b.example.com"] * 2
    assert transport.spec.hostname == "b.example.com"
    assert transport.origin.hostname == "a.example.com"
    assert transport.redirects.count(B) == 1
