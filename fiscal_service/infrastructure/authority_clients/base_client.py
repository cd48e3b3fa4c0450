"""
Абстрактный базовый класс для клиентов налогового органа
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fiscal_service.core.enums import DocumentType
from fiscal_service.models.domain import FiscalDocumentItem


@dataclass
class Counterparty:
    """Получатель документа"""
    name: str
    tax_id: str
    address: str


@dataclass
class AuthorityRequest:
    """Запрос на авторизацию документа в налоговом органе"""
    attempt_id: str
    document_type: DocumentType
    series: str
    counterparty: Counterparty
    items: List[FiscalDocumentItem]
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """Представление запроса в JSON-совместимом виде"""
        return {
            "attempt_id": self.attempt_id,
            "document_type": self.document_type.value,
            "series": self.series,
            "customer": {
                "name": self.counterparty.name,
                "doc": self.counterparty.tax_id,
                "address": self.counterparty.address,
            },
            "items": [item.model_dump(mode="json") for item in self.items],
            "extra": self.extras,
        }


@dataclass
class AuthorityOutcome:
    """
    Ответ налогового органа: авторизация или отказ

    Транспортные сбои сюда не попадают, клиенты бросают
    AuthorityUnavailableError.
    """
    authorized: bool
    external_document_ref: Optional[str] = None
    external_render_ref: Optional[str] = None
    rejection_reason: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def authorize(
        cls,
        external_document_ref: str,
        external_render_ref: str,
        message: Optional[str] = None
    ) -> "AuthorityOutcome":
        return cls(
            authorized=True,
            external_document_ref=external_document_ref,
            external_render_ref=external_render_ref,
            message=message
        )

    @classmethod
    def reject(cls, reason: str) -> "AuthorityOutcome":
        return cls(authorized=False, rejection_reason=reason)


class BaseAuthorityClient(ABC):
    """
    Абстрактный базовый класс для всех клиентов налогового органа
    Определяет единый интерфейс submit(request) -> outcome
    """

    @abstractmethod
    async def submit(self, request: AuthorityRequest) -> AuthorityOutcome:
        """
        Отправить документ на авторизацию

        Args:
            request: Запрос с контрагентом, строками и доп. полями

        Returns:
            AuthorityOutcome с авторизацией или отказом

        Raises:
            AuthorityUnavailableError: Орган недоступен или ответ некорректен
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Проверка готовности клиента

        Returns:
            True если клиент сконфигурирован и готов к работе
        """
        pass

    def cleanup(self) -> None:
        """Очистка ресурсов (опционально)"""
        pass
