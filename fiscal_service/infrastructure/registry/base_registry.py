"""
Абстрактный реестр фискальных документов
"""
from abc import ABC, abstractmethod
from typing import List

from fiscal_service.models.domain import DocumentFilter, FiscalDocument, FiscalDocumentItem


class BaseDocumentRegistry(ABC):
    """
    Контракт хранилища документов

    create_document атомарен: заголовок и строки сохраняются вместе
    или не сохраняется ничего. Выделенные номера не переиспользуются,
    даже если последующая запись не удалась.
    """

    def initialize(self) -> None:
        """Подготовка хранилища (опционально)"""
        pass

    @abstractmethod
    async def allocate_number(self, series: str) -> int:
        """
        Выделить следующий номер в серии

        Вызовы сериализуются: два конкурентных вызова в одной серии
        никогда не получат одинаковый номер.

        Raises:
            NumberingError: Не удалось выделить номер
        """
        pass

    @abstractmethod
    async def create_document(
        self,
        header: FiscalDocument,
        items: List[FiscalDocumentItem]
    ) -> str:
        """
        Сохранить заголовок и строки документа

        Args:
            header: Заголовок документа (id и items игнорируются)
            items: Строки документа

        Returns:
            Идентификатор сохранённого документа

        Raises:
            PersistenceError: Запись не удалась, ничего не сохранено
        """
        pass

    @abstractmethod
    async def list_documents(self, document_filter: DocumentFilter) -> List[FiscalDocument]:
        """Документы со строками, новые первыми"""
        pass

    @abstractmethod
    async def get_document_with_items(self, document_id: str) -> FiscalDocument:
        """
        Документ со строками

        Raises:
            DocumentNotFoundError: Документ не найден
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True если хранилище готово к работе"""
        pass

    def cleanup(self) -> None:
        """Очистка ресурсов (опционально)"""
        pass
