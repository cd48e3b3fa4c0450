"""
Fiscal handlers - эмиссия и чтение фискальных документов
"""
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from fiscal_service.api.dependencies import get_emission_service
from fiscal_service.api.security import Principal, get_current_principal, require_configuration_role
from fiscal_service.config import get_settings
from fiscal_service.core.enums import DocumentStatus, DocumentType, EmissionOutcome
from fiscal_service.core.exceptions import DocumentNotFoundError, PersistenceError
from fiscal_service.models.domain import DocumentFilter, FiscalDocument
from fiscal_service.models.requests import EmitDocumentRequest
from fiscal_service.models.responses import (
    DocumentListResponse,
    EmissionResponse,
    FiscalConfigResponse,
    ValidationResponse
)
from fiscal_service.services.emission_service import EmissionService
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/fiscal", tags=["Fiscal"])

FAILURE_STATUS_CODES = {
    EmissionOutcome.VALIDATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    EmissionOutcome.REJECTED: status.HTTP_409_CONFLICT,
    EmissionOutcome.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    EmissionOutcome.PERSISTENCE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post("/documents/validate", response_model=ValidationResponse)
async def validate_document(
    request: EmitDocumentRequest,
    principal: Principal = Depends(get_current_principal),
    emission_service: EmissionService = Depends(get_emission_service)
) -> ValidationResponse:
    """
    Проверить запрос на эмиссию без отправки в налоговый орган

    Возвращает полный список ошибок, которые нужно исправить.
    """
    result = emission_service.validate(request)
    return ValidationResponse(valid=result.valid, errors=result.errors)


@router.post(
    "/documents",
    response_model=EmissionResponse,
    status_code=status.HTTP_201_CREATED
)
async def emit_document(
    request: EmitDocumentRequest,
    principal: Principal = Depends(get_current_principal),
    emission_service: EmissionService = Depends(get_emission_service)
) -> EmissionResponse:
    """
    Эмитировать фискальный документ

    Args:
        request: Запрос на эмиссию
        principal: Пользователь (DI)
        emission_service: Сервис эмиссии (DI)

    Returns:
        EmissionResponse с авторизованным документом

    Raises:
        HTTPException 422: Ошибки валидации
        HTTPException 409: Отказ налогового органа
        HTTPException 503: Налоговый орган недоступен (можно повторить)
        HTTPException 500: Документ авторизован, но не сохранён
    """
    start_time = time.time()

    try:
        logger.info(
            "Received emission request",
            document_type=request.document_type.value,
            subject=principal.subject
        )

        result = await emission_service.emit(request)

    except Exception as e:
        logger.error("Unexpected error", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "Internal server error",
                "message": "An unexpected error occurred"
            }
        )

    response = EmissionResponse(
        success=result.succeeded,
        kind=result.kind,
        status=result.status,
        attempt_id=result.attempt_id,
        processing_time_ms=int((time.time() - start_time) * 1000),
        document=result.document,
        errors=result.errors,
        rejection_reason=result.rejection_reason,
        message=result.message,
        retryable=result.retryable,
        details=result.details
    )

    if not result.succeeded:
        raise HTTPException(
            status_code=FAILURE_STATUS_CODES[result.kind],
            detail=response.model_dump(mode="json")
        )

    return response


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    document_type: Optional[DocumentType] = Query(None, description="Тип документа"),
    document_status: Optional[DocumentStatus] = Query(None, alias="status", description="Статус"),
    series: Optional[str] = Query(None, description="Серия"),
    counterparty_tax_id: Optional[str] = Query(None, description="CPF/CNPJ контрагента"),
    limit: int = Query(100, ge=1, le=1000, description="Максимум документов"),
    principal: Principal = Depends(get_current_principal),
    emission_service: EmissionService = Depends(get_emission_service)
) -> DocumentListResponse:
    """Список документов со строками, новые первыми"""
    document_filter = DocumentFilter(
        document_type=document_type,
        status=document_status,
        series=series,
        counterparty_tax_id=counterparty_tax_id,
        limit=limit
    )
    try:
        documents = await emission_service.list_documents(document_filter)
    except PersistenceError as e:
        logger.error("Failed to list documents", error=e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Registry failure", "message": e.message}
        )

    return DocumentListResponse(count=len(documents), documents=documents)


@router.get("/documents/{document_id}", response_model=FiscalDocument)
async def get_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    emission_service: EmissionService = Depends(get_emission_service)
) -> FiscalDocument:
    """Документ со строками"""
    try:
        return await emission_service.get_document(document_id)
    except DocumentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "Document not found",
                "message": e.message,
                "details": e.details
            }
        )


@router.get("/config", response_model=FiscalConfigResponse)
async def get_fiscal_config(
    principal: Principal = Depends(require_configuration_role)
) -> FiscalConfigResponse:
    """Фискальная конфигурация (только master/admin)"""
    settings = get_settings()

    return FiscalConfigResponse(
        authority_mode=settings.AUTHORITY_MODE,
        authority_timeout_seconds=settings.AUTHORITY_TIMEOUT_SECONDS,
        registry_backend=settings.REGISTRY_BACKEND,
        goods_invoice_series=settings.GOODS_INVOICE_SERIES,
        service_invoice_series=settings.SERVICE_INVOICE_SERIES,
        service_tax_withholding_rate=settings.SERVICE_TAX_WITHHOLDING_RATE,
        persist_rejected_attempts=settings.PERSIST_REJECTED_ATTEMPTS
    )
