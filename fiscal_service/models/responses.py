"""
Pydantic модели для ответов API
"""
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from fiscal_service.models.domain import FiscalDocument
from fiscal_service.core.enums import AuthorityMode, DocumentStatus, EmissionOutcome, RegistryBackend


class ValidationResponse(BaseModel):
    """Ответ на проверку запроса"""
    valid: bool = Field(..., description="Можно эмитировать")
    errors: List[str] = Field(default_factory=list, description="Список ошибок")


class EmissionResponse(BaseModel):
    """Ответ на эмиссию документа"""
    success: bool = Field(..., description="Документ авторизован")
    kind: EmissionOutcome = Field(..., description="Итог попытки")
    status: DocumentStatus = Field(..., description="Конечное состояние")
    attempt_id: Optional[str] = Field(None, description="Идентификатор попытки")
    processing_time_ms: int = Field(..., description="Время обработки в миллисекундах")
    document: Optional[FiscalDocument] = Field(None, description="Авторизованный документ")
    errors: List[str] = Field(default_factory=list, description="Ошибки валидации")
    rejection_reason: Optional[str] = Field(None, description="Причина отказа")
    message: Optional[str] = Field(None, description="Сообщение")
    retryable: bool = Field(False, description="Можно повторить запрос")
    details: dict = Field(default_factory=dict, description="Данные для сверки")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "kind": "authorized",
                "status": "authorized",
                "attempt_id": "0b6f3c1e-8a52-4f55-9d51-6a4b1f0f6c2e",
                "processing_time_ms": 540,
                "document": {
                    "id": "5c2d1a7e-1f44-4b0a-8f0c-3a7c2b9e4d11",
                    "number": 1,
                    "series": "900",
                    "document_type": "service_invoice",
                    "status": "authorized",
                    "counterparty_name": "Construtora Exemplo Ltda",
                    "counterparty_tax_id": "12345678000190",
                    "counterparty_address": "Rua das Obras, 100 - Centro, São Paulo/SP",
                    "issued_at": "2026-10-17T14:35:00Z",
                    "external_document_ref": "https://sandbox.fiscal.local/xml/900-1.xml",
                    "external_render_ref": "https://sandbox.fiscal.local/pdf/900-1.pdf",
                    "total_amount": "500.00",
                    "service_code": "07.02",
                    "tax_withheld": False,
                    "withheld_amount": "0.00",
                    "items": []
                },
                "errors": [],
                "retryable": False
            }
        }


class DocumentListResponse(BaseModel):
    """Список документов"""
    count: int = Field(..., description="Количество документов")
    documents: List[FiscalDocument] = Field(default_factory=list, description="Документы")


class FiscalConfigResponse(BaseModel):
    """Текущая фискальная конфигурация (только для администраторов)"""
    authority_mode: AuthorityMode
    authority_timeout_seconds: float
    registry_backend: RegistryBackend
    goods_invoice_series: str
    service_invoice_series: str
    service_tax_withholding_rate: Decimal
    persist_rejected_attempts: bool


class HealthResponse(BaseModel):
    """Ответ health check"""
    status: str = Field(..., description="Статус сервиса")
    version: str = Field(..., description="Версия приложения")
    authority_available: bool = Field(..., description="Доступность клиента налогового органа")
    registry_available: bool = Field(..., description="Доступность реестра документов")
