"""
Главный сервис эмиссии - оркестратор
"""
import asyncio
import functools
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from fiscal_service.core.enums import DocumentStatus, DocumentType, EmissionOutcome
from fiscal_service.core.exceptions import AuthorityUnavailableError, PersistenceError
from fiscal_service.core.logging import emission_context, get_logger
from fiscal_service.infrastructure.authority_clients.base_client import (
    AuthorityOutcome,
    AuthorityRequest,
    BaseAuthorityClient,
    Counterparty
)
from fiscal_service.infrastructure.registry.base_registry import BaseDocumentRegistry
from fiscal_service.models.domain import (
    AssembledDocument,
    DocumentFilter,
    EmissionResult,
    FiscalDocument,
    ValidationResult
)
from fiscal_service.models.requests import EmitDocumentRequest
from fiscal_service.services.document_assembler import DocumentAssembler
from fiscal_service.services.document_validator import validate_document
from fiscal_service.services.emission_attempt import EmissionAttempt
from fiscal_service.utils.tax_id import digits_only, mask_tax_id

logger = get_logger(__name__)


class EmissionService:
    """
    Главный сервис эмиссии фискальных документов
    Оркестрирует процесс: валидация → налоговый орган → номер → сохранение
    """

    def __init__(
        self,
        authority_client: BaseAuthorityClient,
        registry: BaseDocumentRegistry,
        assembler: DocumentAssembler,
        default_series: Dict[DocumentType, str],
        authority_timeout_seconds: float = 30.0,
        persist_rejected_attempts: bool = False
    ):
        """
        Инициализация сервиса эмиссии

        Args:
            authority_client: Клиент налогового органа
            registry: Реестр документов
            assembler: Сборщик сумм документа
            default_series: Серия по умолчанию для каждого типа документа
            authority_timeout_seconds: Таймаут ответа налогового органа
            persist_rejected_attempts: Сохранять отклонённые попытки для аудита
        """
        self.authority_client = authority_client
        self.registry = registry
        self.assembler = assembler
        self.default_series = default_series
        self.authority_timeout_seconds = authority_timeout_seconds
        self.persist_rejected_attempts = persist_rejected_attempts
        self._abandoned_calls: Set[asyncio.Future] = set()

        logger.info(
            "Emission service initialized",
            authority_client=type(authority_client).__name__,
            registry=type(registry).__name__,
            authority_timeout_seconds=authority_timeout_seconds,
            persist_rejected_attempts=persist_rejected_attempts
        )

    def validate(self, request: EmitDocumentRequest) -> ValidationResult:
        """Проверить запрос без эмиссии"""
        return validate_document(request)

    async def emit(self, request: EmitDocumentRequest) -> EmissionResult:
        """
        Полный процесс эмиссии документа

        Ошибки валидации, отказ органа, недоступность органа и сбой
        сохранения возвращаются как EmissionResult с соответствующим kind.

        Args:
            request: Запрос на эмиссию

        Returns:
            EmissionResult
        """
        start_time = time.time()

        validation = validate_document(request)
        if not validation.valid:
            return EmissionResult(
                kind=EmissionOutcome.VALIDATION_FAILED,
                status=DocumentStatus.DRAFT,
                errors=validation.errors,
                message="Document request has validation errors"
            )

        series = request.series or self.default_series[request.document_type]
        attempt = EmissionAttempt(document_type=request.document_type, series=series)

        with emission_context(
            attempt_id=attempt.attempt_id,
            document_type=request.document_type.value,
            series=series
        ):
            logger.info(
                "Starting document emission",
                items_count=len(request.items),
                tax_id=mask_tax_id(request.counterparty_tax_id)
            )

            assembled = self.assembler.assemble(
                document_type=request.document_type,
                items=request.items,
                service_code=request.service_code,
                tax_withheld=request.tax_withheld
            )

            attempt.transition(DocumentStatus.SUBMITTING)
            authority_request = self._build_authority_request(attempt, request, assembled)

            try:
                outcome = await self._submit(attempt, authority_request)
            except AuthorityUnavailableError as e:
                attempt.transition(DocumentStatus.FAILED)
                logger.warning(
                    "Authority unavailable",
                    error=e.message,
                    error_type=type(e).__name__
                )
                return EmissionResult(
                    kind=EmissionOutcome.UNAVAILABLE,
                    attempt_id=attempt.attempt_id,
                    status=attempt.status,
                    message=f"{e.message}. Nothing was recorded, it is safe to resubmit.",
                    retryable=True,
                    details=e.details
                )

            if not outcome.authorized:
                attempt.transition(DocumentStatus.REJECTED)
                return await self._handle_rejection(attempt, request, assembled, outcome)

            attempt.transition(DocumentStatus.AUTHORIZED)
            result = await self._persist_authorized(attempt, request, assembled, outcome)

            logger.info(
                "Document emission finished",
                kind=result.kind.value,
                processing_time_ms=int((time.time() - start_time) * 1000)
            )
            return result

    async def list_documents(self, document_filter: DocumentFilter) -> List[FiscalDocument]:
        """Документы со строками, новые первыми"""
        return await self.registry.list_documents(document_filter)

    async def get_document(self, document_id: str) -> FiscalDocument:
        """Документ со строками (DocumentNotFoundError если нет)"""
        return await self.registry.get_document_with_items(document_id)

    def is_ready(self) -> bool:
        """True если клиент органа и реестр готовы"""
        return self.authority_client.is_available() and self.registry.is_available()

    def _build_authority_request(
        self,
        attempt: EmissionAttempt,
        request: EmitDocumentRequest,
        assembled: AssembledDocument
    ) -> AuthorityRequest:
        extras = {}
        if request.document_type == DocumentType.SERVICE_INVOICE:
            extras = {
                "service_code": request.service_code,
                "tax_withheld": request.tax_withheld,
                "withheld_amount": str(assembled.withheld_amount),
            }

        return AuthorityRequest(
            attempt_id=attempt.attempt_id,
            document_type=request.document_type,
            series=attempt.series,
            counterparty=Counterparty(
                name=request.counterparty_name.strip(),
                tax_id=digits_only(request.counterparty_tax_id),
                address=request.counterparty_address.strip()
            ),
            items=[entry.item for entry in assembled.items],
            extras=extras
        )

    async def _submit(
        self,
        attempt: EmissionAttempt,
        authority_request: AuthorityRequest
    ) -> AuthorityOutcome:
        """
        Вызов органа, защищённый от отмены запроса

        Если клиент отменил запрос, вызов доводится до конца,
        а его итог записывается в лог.
        """
        call = asyncio.ensure_future(self._call_authority(authority_request))
        try:
            return await asyncio.shield(call)
        except asyncio.CancelledError:
            logger.warning(
                "Emission abandoned while submitting, awaiting authority outcome",
                attempt_id=attempt.attempt_id
            )
            self._abandoned_calls.add(call)
            call.add_done_callback(
                functools.partial(self._log_abandoned_outcome, attempt.attempt_id)
            )
            raise

    async def _call_authority(self, authority_request: AuthorityRequest) -> AuthorityOutcome:
        try:
            return await asyncio.wait_for(
                self.authority_client.submit(authority_request),
                timeout=self.authority_timeout_seconds
            )
        except asyncio.TimeoutError:
            raise AuthorityUnavailableError(
                f"Authority did not respond within {self.authority_timeout_seconds}s",
                details={"timeout_seconds": self.authority_timeout_seconds}
            )

    def _log_abandoned_outcome(self, attempt_id: str, call: asyncio.Future) -> None:
        self._abandoned_calls.discard(call)

        if call.cancelled():
            logger.error("Abandoned authority call was cancelled", attempt_id=attempt_id)
            return

        error = call.exception()
        if error is not None:
            logger.warning(
                "Abandoned authority call failed",
                attempt_id=attempt_id,
                error=str(error),
                error_type=type(error).__name__
            )
            return

        outcome = call.result()
        if outcome.authorized:
            logger.error(
                "Orphaned authorization: authority authorized a document with no local record",
                attempt_id=attempt_id,
                external_document_ref=outcome.external_document_ref,
                external_render_ref=outcome.external_render_ref
            )
        else:
            logger.info(
                "Abandoned authority call was rejected",
                attempt_id=attempt_id,
                rejection_reason=outcome.rejection_reason
            )

    def _build_header(
        self,
        request: EmitDocumentRequest,
        series: str,
        status: DocumentStatus,
        assembled: AssembledDocument,
        number: Optional[int] = None,
        issued_at: Optional[datetime] = None,
        outcome: Optional[AuthorityOutcome] = None
    ) -> FiscalDocument:
        is_service = request.document_type == DocumentType.SERVICE_INVOICE
        return FiscalDocument(
            number=number,
            series=series,
            document_type=request.document_type,
            status=status,
            counterparty_name=request.counterparty_name.strip(),
            counterparty_tax_id=digits_only(request.counterparty_tax_id),
            counterparty_address=request.counterparty_address.strip(),
            issued_at=issued_at,
            external_document_ref=outcome.external_document_ref if outcome else None,
            external_render_ref=outcome.external_render_ref if outcome else None,
            total_amount=assembled.document_total,
            rejection_reason=outcome.rejection_reason if outcome else None,
            service_code=request.service_code if is_service else None,
            tax_withheld=request.tax_withheld if is_service else False,
            withheld_amount=assembled.withheld_amount
        )

    async def _persist_authorized(
        self,
        attempt: EmissionAttempt,
        request: EmitDocumentRequest,
        assembled: AssembledDocument,
        outcome: AuthorityOutcome
    ) -> EmissionResult:
        items = [entry.item for entry in assembled.items]
        number = None

        try:
            number = await self.registry.allocate_number(attempt.series)
            header = self._build_header(
                request,
                attempt.series,
                DocumentStatus.AUTHORIZED,
                assembled,
                number=number,
                issued_at=datetime.now(timezone.utc),
                outcome=outcome
            )
            document_id = await self.registry.create_document(header, items)
        except PersistenceError as e:
            # Орган авторизовал документ, а локальной записи нет
            details = {
                "attempt_id": attempt.attempt_id,
                "series": attempt.series,
                "number": number,
                "external_document_ref": outcome.external_document_ref,
                "external_render_ref": outcome.external_render_ref,
                "error": e.message,
            }
            logger.error(
                "Authorized document was not persisted, manual reconciliation required",
                **details
            )
            return EmissionResult(
                kind=EmissionOutcome.PERSISTENCE_FAILED,
                attempt_id=attempt.attempt_id,
                status=attempt.status,
                message=(
                    "Document was authorized by the authority but could not be recorded. "
                    "Do not resubmit; reconcile manually."
                ),
                retryable=False,
                details=details
            )

        document = header.model_copy(update={"id": document_id, "items": items})

        logger.info(
            "Document authorized and recorded",
            document_id=document_id,
            number=number,
            total_amount=str(document.total_amount)
        )

        return EmissionResult(
            kind=EmissionOutcome.AUTHORIZED,
            attempt_id=attempt.attempt_id,
            status=attempt.status,
            document=document,
            message=outcome.message
        )

    async def _handle_rejection(
        self,
        attempt: EmissionAttempt,
        request: EmitDocumentRequest,
        assembled: AssembledDocument,
        outcome: AuthorityOutcome
    ) -> EmissionResult:
        logger.info("Authority rejected document", rejection_reason=outcome.rejection_reason)

        details = {}
        if self.persist_rejected_attempts:
            header = self._build_header(
                request,
                attempt.series,
                DocumentStatus.REJECTED,
                assembled,
                outcome=outcome
            )
            items = [entry.item for entry in assembled.items]
            try:
                details["document_id"] = await self.registry.create_document(header, items)
                details["audit_persisted"] = True
            except PersistenceError as e:
                logger.error("Rejected attempt was not persisted for audit", error=e.message)
                details["audit_persisted"] = False
                details["audit_error"] = e.message

        return EmissionResult(
            kind=EmissionOutcome.REJECTED,
            attempt_id=attempt.attempt_id,
            status=attempt.status,
            rejection_reason=outcome.rejection_reason,
            message="Document was rejected by the authority",
            details=details
        )
