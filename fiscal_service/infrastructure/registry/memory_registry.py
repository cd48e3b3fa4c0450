"""
Реестр документов в памяти процесса
"""
import asyncio
import uuid
from collections import defaultdict
from typing import Dict, List, Set, Tuple

from fiscal_service.core.exceptions import DocumentNotFoundError, PersistenceError
from fiscal_service.infrastructure.registry.base_registry import BaseDocumentRegistry
from fiscal_service.models.domain import DocumentFilter, FiscalDocument, FiscalDocumentItem
from fiscal_service.utils.tax_id import digits_only
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)


class InMemoryDocumentRegistry(BaseDocumentRegistry):
    """
    Реестр для разработки и тестов

    Данные живут до перезапуска процесса. Номера выделяются
    под asyncio.Lock, счётчики только растут.
    """

    def __init__(self):
        self._documents: Dict[str, FiscalDocument] = {}
        self._order: List[str] = []
        self._counters: Dict[str, int] = defaultdict(int)
        self._used_numbers: Set[Tuple[str, int]] = set()
        self._lock = asyncio.Lock()

        logger.info("In-memory document registry initialized")

    async def allocate_number(self, series: str) -> int:
        async with self._lock:
            self._counters[series] += 1
            number = self._counters[series]

        logger.debug("Document number allocated", series=series, number=number)
        return number

    async def create_document(
        self,
        header: FiscalDocument,
        items: List[FiscalDocumentItem]
    ) -> str:
        # Все проверки до первой записи: либо пишем всё, либо ничего
        key = (header.series, header.number)
        if header.number is not None and key in self._used_numbers:
            raise PersistenceError(
                f"Document number {header.number} already used in series {header.series}",
                details={"series": header.series, "number": header.number}
            )

        document_id = str(uuid.uuid4())
        document = header.model_copy(
            update={
                "id": document_id,
                "items": [item.model_copy(deep=True) for item in items],
            },
            deep=True
        )

        self._documents[document_id] = document
        self._order.append(document_id)
        if header.number is not None:
            self._used_numbers.add(key)

        return document_id

    async def list_documents(self, document_filter: DocumentFilter) -> List[FiscalDocument]:
        tax_id = (
            digits_only(document_filter.counterparty_tax_id)
            if document_filter.counterparty_tax_id else None
        )
        result = []
        for document_id in reversed(self._order):
            document = self._documents[document_id]
            if document_filter.document_type and document.document_type != document_filter.document_type:
                continue
            if document_filter.status and document.status != document_filter.status:
                continue
            if document_filter.series and document.series != document_filter.series:
                continue
            if tax_id and document.counterparty_tax_id != tax_id:
                continue
            result.append(document.model_copy(deep=True))
            if len(result) >= document_filter.limit:
                break
        return result

    async def get_document_with_items(self, document_id: str) -> FiscalDocument:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(
                f"Document {document_id} not found",
                details={"document_id": document_id}
            )
        return document.model_copy(deep=True)

    def is_available(self) -> bool:
        return True
