"""Shared fixtures for fiscal service tests."""

import asyncio
from decimal import Decimal

import pytest

from fiscal_service.core.enums import DocumentType
from fiscal_service.core.exceptions import AuthorityUnavailableError
from fiscal_service.infrastructure.authority_clients.base_client import (
    AuthorityOutcome,
    BaseAuthorityClient
)
from fiscal_service.infrastructure.registry.memory_registry import InMemoryDocumentRegistry
from fiscal_service.models.requests import DocumentItemRequest, EmitDocumentRequest
from fiscal_service.services.document_assembler import DocumentAssembler
from fiscal_service.services.emission_service import EmissionService

VALID_CNPJ = "12.345.678/0001-90"
VALID_CPF = "123.456.789-09"

DEFAULT_SERIES = {
    DocumentType.GOODS_INVOICE: "1",
    DocumentType.SERVICE_INVOICE: "900",
}


class FakeAuthorityClient(BaseAuthorityClient):
    """Scriptable authority: authorizes by default, records every call."""

    def __init__(self, outcome=None, error=None, delay=0.0):
        self.outcome = outcome
        self.error = error
        self.delay = delay
        self.requests = []
        self.completed = 0
        self.started = asyncio.Event()

    async def submit(self, request):
        self.requests.append(request)
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        self.completed += 1
        if self.error is not None:
            raise self.error
        if self.outcome is not None:
            return self.outcome
        return AuthorityOutcome.authorize(
            external_document_ref=f"https://authority.test/xml/{request.attempt_id}.xml",
            external_render_ref=f"https://authority.test/pdf/{request.attempt_id}.pdf",
        )

    def is_available(self):
        return True


class RecordingLogger:
    """Stands in for a module structlog logger and keeps every event."""

    def __init__(self):
        self.events = []

    def _record(self, level, event, **kwargs):
        self.events.append({"level": level, "event": event, **kwargs})

    def debug(self, event, **kwargs):
        self._record("debug", event, **kwargs)

    def info(self, event, **kwargs):
        self._record("info", event, **kwargs)

    def warning(self, event, **kwargs):
        self._record("warning", event, **kwargs)

    def error(self, event, **kwargs):
        self._record("error", event, **kwargs)

    def find(self, event):
        return [entry for entry in self.events if entry["event"] == event]


def make_item(**overrides):
    values = {
        "description": "Cimento CP-II 50kg",
        "quantity": Decimal("2"),
        "unit_price": Decimal("10.00"),
        "ncm": "2523.29.10",
        "cfop": "5102",
    }
    values.update(overrides)
    return DocumentItemRequest(**values)


def make_goods_request(**overrides):
    values = {
        "document_type": DocumentType.GOODS_INVOICE,
        "counterparty_name": "Construtora Horizonte Ltda",
        "counterparty_tax_id": VALID_CNPJ,
        "counterparty_address": "Av. Brasil, 1500 - Centro, Campinas/SP",
        "items": [make_item()],
    }
    values.update(overrides)
    return EmitDocumentRequest(**values)


def make_service_request(**overrides):
    values = {
        "document_type": DocumentType.SERVICE_INVOICE,
        "counterparty_name": "Maria Souza",
        "counterparty_tax_id": VALID_CPF,
        "counterparty_address": "Rua das Flores, 42 - Jardim, Sorocaba/SP",
        "items": [
            DocumentItemRequest(
                description="Reforma de telhado",
                quantity=Decimal("1"),
                unit_price=Decimal("500.00"),
            )
        ],
        "service_code": "07.02",
        "tax_withheld": False,
    }
    values.update(overrides)
    return EmitDocumentRequest(**values)


@pytest.fixture
def goods_request():
    return make_goods_request()


@pytest.fixture
def service_request():
    return make_service_request()


@pytest.fixture
def authority_client():
    return FakeAuthorityClient()


@pytest.fixture
def registry():
    return InMemoryDocumentRegistry()


@pytest.fixture
def assembler():
    return DocumentAssembler(withholding_rate=Decimal("0.05"))


@pytest.fixture
def make_service(registry, assembler):
    """Build an EmissionService around a given authority client."""

    def _make(client, timeout=5.0, persist_rejected=False, service_registry=None):
        return EmissionService(
            authority_client=client,
            registry=service_registry or registry,
            assembler=assembler,
            default_series=DEFAULT_SERIES,
            authority_timeout_seconds=timeout,
            persist_rejected_attempts=persist_rejected,
        )

    return _make


@pytest.fixture
def emission_service(make_service, authority_client):
    return make_service(authority_client)
