"""Tests for the emission orchestrator."""

import asyncio
import random
from decimal import Decimal

import pytest

import fiscal_service.services.emission_service as emission_module
from fiscal_service.core.enums import DocumentStatus, DocumentType, EmissionOutcome
from fiscal_service.core.exceptions import (
    AuthorityUnavailableError,
    MalformedAuthorityResponseError,
    PersistenceError,
)
from fiscal_service.infrastructure.authority_clients.base_client import AuthorityOutcome
from fiscal_service.infrastructure.registry.memory_registry import InMemoryDocumentRegistry
from fiscal_service.models.domain import DocumentFilter
from conftest import FakeAuthorityClient, RecordingLogger, make_goods_request, make_item


class FailingCreateRegistry(InMemoryDocumentRegistry):
    """Allocates numbers but fails every header + items write."""

    async def create_document(self, header, items):
        raise PersistenceError("disk full", details={"table": "fiscal_documents"})


async def all_documents(registry):
    return await registry.list_documents(DocumentFilter())


async def test_goods_invoice_is_authorized_and_persisted(emission_service, registry, goods_request):
    result = await emission_service.emit(goods_request)

    assert result.kind == EmissionOutcome.AUTHORIZED
    assert result.status == DocumentStatus.AUTHORIZED
    document = result.document
    assert document.id is not None
    assert document.number == 1
    assert document.series == "1"
    assert document.counterparty_tax_id == "12345678000190"
    assert document.total_amount == Decimal("20.00")
    assert document.issued_at is not None
    assert document.external_document_ref.endswith(".xml")
    assert document.external_render_ref.endswith(".pdf")
    assert [item.code for item in document.items] == ["ITEM-1"]

    stored = await registry.get_document_with_items(document.id)
    assert stored.status == DocumentStatus.AUTHORIZED
    assert stored.total_amount == document.total_amount
    assert len(stored.items) == 1


async def test_service_invoice_scenario(emission_service, registry, service_request):
    result = await emission_service.emit(service_request)

    assert result.kind == EmissionOutcome.AUTHORIZED
    document = result.document
    assert document.document_type == DocumentType.SERVICE_INVOICE
    assert document.series == "900"
    assert document.total_amount == Decimal("500.00")
    assert document.tax_withheld is False
    assert document.withheld_amount == Decimal("0.00")
    assert document.items[0].service_code == "07.02"


async def test_authority_receives_normalized_request(emission_service, authority_client, service_request):
    await emission_service.emit(service_request.model_copy(update={"tax_withheld": True}))

    sent = authority_client.requests[0]
    assert sent.counterparty.tax_id == "12345678909"
    assert sent.extras == {
        "service_code": "07.02",
        "tax_withheld": True,
        "withheld_amount": "25.00",
    }
    assert sent.to_payload()["items"][0]["code"] == "ITEM-1"


async def test_explicit_series_overrides_default(emission_service, goods_request):
    result = await emission_service.emit(goods_request.model_copy(update={"series": "7"}))

    assert result.document.series == "7"
    assert result.document.number == 1


async def test_validation_failure_calls_nothing(emission_service, authority_client, registry):
    request = make_goods_request(items=[])

    result = await emission_service.emit(request)

    assert result.kind == EmissionOutcome.VALIDATION_FAILED
    assert result.status == DocumentStatus.DRAFT
    assert result.attempt_id is None
    assert result.errors == ["At least one item required."]
    assert authority_client.requests == []
    assert await all_documents(registry) == []


async def test_rejection_is_returned_and_not_persisted(make_service, registry, goods_request):
    client = FakeAuthorityClient(outcome=AuthorityOutcome.reject("CFOP incompatível com a operação"))
    service = make_service(client)

    result = await service.emit(goods_request)

    assert result.kind == EmissionOutcome.REJECTED
    assert result.status == DocumentStatus.REJECTED
    assert result.rejection_reason == "CFOP incompatível com a operação"
    assert result.retryable is False
    assert await all_documents(registry) == []


async def test_rejection_can_be_persisted_for_audit(make_service, registry, goods_request):
    client = FakeAuthorityClient(outcome=AuthorityOutcome.reject("Duplicidade de NF-e"))
    service = make_service(client, persist_rejected=True)

    result = await service.emit(goods_request)

    assert result.kind == EmissionOutcome.REJECTED
    assert result.details["audit_persisted"] is True
    stored = await registry.get_document_with_items(result.details["document_id"])
    assert stored.status == DocumentStatus.REJECTED
    assert stored.number is None
    assert stored.rejection_reason == "Duplicidade de NF-e"


async def test_authority_timeout_is_retryable_and_persists_nothing(make_service, registry, goods_request):
    client = FakeAuthorityClient(delay=1.0)
    service = make_service(client, timeout=0.05)

    result = await service.emit(goods_request)

    assert result.kind == EmissionOutcome.UNAVAILABLE
    assert result.status == DocumentStatus.FAILED
    assert result.retryable is True
    assert "safe to resubmit" in result.message
    assert await all_documents(registry) == []


@pytest.mark.parametrize(
    "error",
    [
        AuthorityUnavailableError("connection refused"),
        MalformedAuthorityResponseError("Authority response is not valid JSON"),
    ],
)
async def test_transport_and_malformed_responses_fail(make_service, registry, goods_request, error):
    service = make_service(FakeAuthorityClient(error=error))

    result = await service.emit(goods_request)

    assert result.kind == EmissionOutcome.UNAVAILABLE
    assert result.status == DocumentStatus.FAILED
    assert result.retryable is True
    assert await all_documents(registry) == []


async def test_persistence_failure_after_authorization_is_surfaced(
    make_service, goods_request, monkeypatch
):
    recorder = RecordingLogger()
    monkeypatch.setattr(emission_module, "logger", recorder)
    failing_registry = FailingCreateRegistry()
    service = make_service(FakeAuthorityClient(), service_registry=failing_registry)

    result = await service.emit(goods_request)

    assert result.kind == EmissionOutcome.PERSISTENCE_FAILED
    assert result.status == DocumentStatus.AUTHORIZED
    assert result.retryable is False
    assert result.details["number"] == 1
    assert result.details["external_document_ref"].endswith(".xml")
    assert recorder.find(
        "Authorized document was not persisted, manual reconciliation required"
    )

    # the allocated number is burned, never handed out again
    assert await failing_registry.allocate_number("1") == 2


async def test_abandoned_emission_still_resolves_authority_call(
    make_service, registry, goods_request, monkeypatch
):
    recorder = RecordingLogger()
    monkeypatch.setattr(emission_module, "logger", recorder)
    client = FakeAuthorityClient(delay=0.05)
    service = make_service(client)

    task = asyncio.create_task(service.emit(goods_request))
    await client.started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(0.2)

    assert client.completed == 1
    assert recorder.find(
        "Orphaned authorization: authority authorized a document with no local record"
    )
    assert service._abandoned_calls == set()
    assert await all_documents(registry) == []


async def test_concurrent_emissions_never_share_a_number(make_service, registry):
    rng = random.Random(42)
    client = FakeAuthorityClient()
    service = make_service(client)

    async def emit_one():
        await asyncio.sleep(rng.random() / 100)
        return await service.emit(make_goods_request(items=[make_item()]))

    results = await asyncio.gather(*(emit_one() for _ in range(50)))

    numbers = [result.document.number for result in results]
    assert all(result.kind == EmissionOutcome.AUTHORIZED for result in results)
    assert sorted(numbers) == list(range(1, 51))


async def test_series_are_numbered_independently(emission_service, goods_request, service_request):
    goods = await emission_service.emit(goods_request)
    service = await emission_service.emit(service_request)
    goods_again = await emission_service.emit(goods_request)

    assert (goods.document.series, goods.document.number) == ("1", 1)
    assert (service.document.series, service.document.number) == ("900", 1)
    assert (goods_again.document.series, goods_again.document.number) == ("1", 2)


async def test_list_and_get_documents(emission_service, goods_request, service_request):
    await emission_service.emit(goods_request)
    emitted = await emission_service.emit(service_request)

    services = await emission_service.list_documents(
        DocumentFilter(document_type=DocumentType.SERVICE_INVOICE)
    )
    fetched = await emission_service.get_document(emitted.document.id)

    assert [doc.id for doc in services] == [emitted.document.id]
    assert fetched.items[0].line_total == Decimal("500.00")
    assert emission_service.is_ready()


async def test_oversized_amounts_fail_validation_instead_of_crashing(
    emission_service, authority_client, registry
):
    request = make_goods_request(
        items=[make_item(quantity=Decimal("1e13"), unit_price=Decimal("1e13"))]
    )

    result = await emission_service.emit(request)

    assert result.kind == EmissionOutcome.VALIDATION_FAILED
    assert len(result.errors) == 2
    assert authority_client.requests == []
    assert await all_documents(registry) == []


async def test_overlong_series_never_reaches_authority_or_numbering(
    emission_service, authority_client, registry, goods_request
):
    result = await emission_service.emit(goods_request.model_copy(update={"series": "X" * 30}))

    assert result.kind == EmissionOutcome.VALIDATION_FAILED
    assert authority_client.requests == []
    assert await registry.allocate_number("X" * 30) == 1
