"""
Песочница налогового органа
"""
import asyncio
from typing import Iterable, Optional

from fiscal_service.infrastructure.authority_clients.base_client import (
    AuthorityOutcome,
    AuthorityRequest,
    BaseAuthorityClient
)
from fiscal_service.utils.tax_id import digits_only, mask_tax_id
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)

SANDBOX_REJECTION_REASON = "Counterparty tax id is not in good standing with the authority."


class SimulatedAuthorityClient(BaseAuthorityClient):
    """
    Симулятор налогового органа для sandbox окружений

    Авторизует все документы после фиксированной задержки, кроме
    контрагентов из списка отклоняемых CPF/CNPJ.
    """

    def __init__(
        self,
        delay_seconds: float = 0.5,
        storage_url: str = "https://sandbox.fiscal.local",
        rejected_tax_ids: Optional[Iterable[str]] = None
    ):
        """
        Args:
            delay_seconds: Имитация задержки ответа
            storage_url: Базовый URL для ссылок на XML/PDF
            rejected_tax_ids: CPF/CNPJ, по которым песочница отказывает
        """
        self.delay_seconds = delay_seconds
        self.storage_url = storage_url.rstrip("/")
        self.rejected_tax_ids = {digits_only(t) for t in (rejected_tax_ids or [])}

        logger.info(
            "Simulated authority configured",
            delay_seconds=delay_seconds,
            rejected_tax_ids_count=len(self.rejected_tax_ids)
        )

    async def submit(self, request: AuthorityRequest) -> AuthorityOutcome:
        """Имитация авторизации документа"""
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        tax_id = digits_only(request.counterparty.tax_id)
        if tax_id in self.rejected_tax_ids:
            logger.info(
                "Sandbox authority rejected document",
                attempt_id=request.attempt_id,
                tax_id=mask_tax_id(tax_id)
            )
            return AuthorityOutcome.reject(SANDBOX_REJECTION_REASON)

        reference = f"{request.series}-{request.attempt_id}"
        return AuthorityOutcome.authorize(
            external_document_ref=f"{self.storage_url}/xml/{reference}.xml",
            external_render_ref=f"{self.storage_url}/pdf/{reference}.pdf",
            message="Document authorized (sandbox)"
        )

    def is_available(self) -> bool:
        return True
