"""
Машина состояний попытки эмиссии
"""
import uuid
from typing import Dict, FrozenSet, List

from fiscal_service.core.enums import DocumentStatus, DocumentType
from fiscal_service.core.exceptions import InvalidTransitionError
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[DocumentStatus, FrozenSet[DocumentStatus]] = {
    DocumentStatus.DRAFT: frozenset({DocumentStatus.SUBMITTING}),
    DocumentStatus.SUBMITTING: frozenset({
        DocumentStatus.AUTHORIZED,
        DocumentStatus.REJECTED,
        DocumentStatus.FAILED,
    }),
    DocumentStatus.AUTHORIZED: frozenset(),
    DocumentStatus.REJECTED: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


class EmissionAttempt:
    """
    Одна попытка эмиссии документа

    Создаётся только для запроса, прошедшего валидацию.
    Терминальные состояния (authorized, rejected, failed) не имеют
    выходов: повторная эмиссия - это новая попытка.
    """

    def __init__(self, document_type: DocumentType, series: str):
        self.attempt_id = str(uuid.uuid4())
        self.document_type = document_type
        self.series = series
        self.status = DocumentStatus.DRAFT
        self.history: List[DocumentStatus] = [DocumentStatus.DRAFT]

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    def transition(self, target: DocumentStatus) -> None:
        """
        Перевести попытку в новое состояние

        Raises:
            InvalidTransitionError: Переход не разрешён
        """
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot move emission attempt from {self.status.value} to {target.value}",
                details={
                    "attempt_id": self.attempt_id,
                    "from_status": self.status.value,
                    "to_status": target.value
                }
            )

        logger.info(
            "Emission state transition",
            attempt_id=self.attempt_id,
            from_status=self.status.value,
            to_status=target.value
        )
        self.status = target
        self.history.append(target)
