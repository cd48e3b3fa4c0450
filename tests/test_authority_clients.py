"""Tests for the simulated and live authority clients."""

import pytest
import requests

from fiscal_service.core.enums import DocumentType
from fiscal_service.core.exceptions import (
    AuthorityUnavailableError,
    ConfigurationError,
    MalformedAuthorityResponseError,
)
from fiscal_service.infrastructure.authority_clients.base_client import (
    AuthorityRequest,
    Counterparty,
)
from fiscal_service.infrastructure.authority_clients.http_client import HttpAuthorityClient
from fiscal_service.infrastructure.authority_clients.simulated_client import (
    SANDBOX_REJECTION_REASON,
    SimulatedAuthorityClient,
)


def make_request(tax_id="12345678000190", document_type=DocumentType.GOODS_INVOICE):
    return AuthorityRequest(
        attempt_id="attempt-1",
        document_type=document_type,
        series="1",
        counterparty=Counterparty(name="Construtora Horizonte", tax_id=tax_id, address="Av. Brasil, 1500"),
        items=[],
        extras={},
    )


class FakeResponse:
    def __init__(self, status_code, body=None, raw=None):
        self.status_code = status_code
        self._body = body
        self._raw = raw

    def json(self):
        if self._raw is not None:
            raise ValueError("Expecting value")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def live_client(session):
    return HttpAuthorityClient(
        base_url="https://gateway.test/functions/v1/",
        api_key="secret",
        timeout_seconds=12.0,
        session=session,
    )


async def test_sandbox_authorizes_with_references():
    client = SimulatedAuthorityClient(delay_seconds=0, storage_url="https://sandbox.test/")

    outcome = await client.submit(make_request())

    assert outcome.authorized
    assert outcome.external_document_ref == "https://sandbox.test/xml/1-attempt-1.xml"
    assert outcome.external_render_ref == "https://sandbox.test/pdf/1-attempt-1.pdf"


async def test_sandbox_rejects_configured_tax_ids():
    client = SimulatedAuthorityClient(delay_seconds=0, rejected_tax_ids=["12.345.678/0001-90"])

    outcome = await client.submit(make_request())

    assert not outcome.authorized
    assert outcome.rejection_reason == SANDBOX_REJECTION_REASON


async def test_live_client_posts_to_document_type_endpoint():
    session = FakeSession(FakeResponse(200, {
        "status": "authorized",
        "xml_url": "https://storage.test/xml/123.xml",
        "pdf_url": "https://storage.test/pdf/123.pdf",
        "message": "Nota Fiscal emitida com sucesso",
    }))

    outcome = await live_client(session).submit(make_request(document_type=DocumentType.SERVICE_INVOICE))

    assert outcome.authorized
    assert outcome.external_document_ref == "https://storage.test/xml/123.xml"
    call = session.calls[0]
    assert call["url"] == "https://gateway.test/functions/v1/emit-nfse"
    assert call["headers"] == {"Authorization": "Bearer secret"}
    assert call["timeout"] == 12.0
    assert call["json"]["customer"]["doc"] == "12345678000190"


@pytest.mark.parametrize(
    "body,reason",
    [
        ({"status": "rejected", "reason": "Rejeição 539: duplicidade"}, "Rejeição 539: duplicidade"),
        ({"status": "rejected", "message": "Rejeição 225: falha no schema"}, "Rejeição 225: falha no schema"),
    ],
)
async def test_live_client_maps_explicit_declines_to_rejections(body, reason):
    outcome = await live_client(FakeSession(FakeResponse(200, body))).submit(make_request())

    assert not outcome.authorized
    assert outcome.rejection_reason == reason


@pytest.mark.parametrize("status_code", [400, 409, 422])
async def test_live_client_gateway_errors_are_unavailable_not_rejections(status_code):
    session = FakeSession(FakeResponse(status_code, {"error": "Missing Authorization header"}))

    with pytest.raises(AuthorityUnavailableError) as exc_info:
        await live_client(session).submit(make_request())

    assert not isinstance(exc_info.value, MalformedAuthorityResponseError)
    assert exc_info.value.details == {
        "status_code": status_code,
        "error": "Missing Authorization header",
    }


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(200, raw="<html>"),
        FakeResponse(200, ["authorized"]),
        FakeResponse(200, {"status": "authorized", "xml_url": "https://storage.test/xml/1.xml"}),
        FakeResponse(200, {"status": "pending"}),
    ],
)
async def test_live_client_malformed_responses(response):
    with pytest.raises(MalformedAuthorityResponseError):
        await live_client(FakeSession(response)).submit(make_request())


async def test_live_client_server_error_is_unavailable():
    with pytest.raises(AuthorityUnavailableError) as exc_info:
        await live_client(FakeSession(FakeResponse(502, raw="Bad Gateway"))).submit(make_request())

    assert not isinstance(exc_info.value, MalformedAuthorityResponseError)
    assert exc_info.value.details == {"status_code": 502}


@pytest.mark.parametrize("error", [requests.Timeout("read timeout"), requests.ConnectionError("refused")])
async def test_live_client_transport_errors_are_unavailable(error):
    with pytest.raises(AuthorityUnavailableError):
        await live_client(FakeSession(error=error)).submit(make_request())


def test_live_client_requires_base_url():
    with pytest.raises(ConfigurationError):
        HttpAuthorityClient(base_url="", api_key="secret")


def test_live_client_cleanup_closes_session():
    session = FakeSession()
    client = live_client(session)

    client.cleanup()

    assert session.closed
    assert client.is_available()
