"""
Доменные модели - бизнес-сущности
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, computed_field

from fiscal_service.core.enums import DocumentType, DocumentStatus, EmissionOutcome
from fiscal_service.utils.money import line_total


class FiscalDocumentItem(BaseModel):
    """Строка фискального документа"""
    code: str = Field(..., description="Код строки внутри документа (ITEM-n)")
    description: str = Field(..., description="Описание товара или услуги")
    quantity: Decimal = Field(..., description="Количество")
    unit_price: Decimal = Field(..., description="Цена за единицу")
    ncm: Optional[str] = Field(None, description="NCM (только NF-e)")
    cfop: Optional[str] = Field(None, description="CFOP (только NF-e)")
    service_code: Optional[str] = Field(None, description="Код услуги (только NFS-e)")

    @computed_field
    @property
    def line_total(self) -> Decimal:
        """Сумма строки, пересчитывается при чтении"""
        return line_total(self.quantity, self.unit_price)


class FiscalDocument(BaseModel):
    """Эмитированный фискальный документ"""
    id: Optional[str] = Field(None, description="Идентификатор, назначается при сохранении")
    number: Optional[int] = Field(None, description="Номер, уникален в пределах серии")
    series: str = Field(..., description="Серия нумерации")
    document_type: DocumentType = Field(..., description="Тип документа")
    status: DocumentStatus = Field(..., description="Статус документа")
    counterparty_name: str = Field(..., description="Имя контрагента")
    counterparty_tax_id: str = Field(..., description="CPF/CNPJ контрагента (только цифры)")
    counterparty_address: str = Field(..., description="Адрес контрагента")
    issued_at: Optional[datetime] = Field(None, description="Дата авторизации")
    external_document_ref: Optional[str] = Field(None, description="Ссылка на XML")
    external_render_ref: Optional[str] = Field(None, description="Ссылка на PDF")
    total_amount: Decimal = Field(..., description="Итоговая сумма документа")
    rejection_reason: Optional[str] = Field(None, description="Причина отказа")
    service_code: Optional[str] = Field(None, description="Код услуги (NFS-e)")
    tax_withheld: bool = Field(False, description="Налог удержан у источника (NFS-e)")
    withheld_amount: Decimal = Field(Decimal("0.00"), description="Сумма удержанного налога")
    items: List[FiscalDocumentItem] = Field(default_factory=list, description="Строки документа")


class DocumentFilter(BaseModel):
    """Фильтр для выборки документов из реестра"""
    document_type: Optional[DocumentType] = None
    status: Optional[DocumentStatus] = None
    series: Optional[str] = None
    counterparty_tax_id: Optional[str] = None
    limit: int = Field(100, ge=1, le=1000)


class ValidationResult(BaseModel):
    """Результат валидации запроса на эмиссию"""
    valid: bool = Field(..., description="Можно эмитировать")
    errors: List[str] = Field(default_factory=list, description="Ошибки в порядке проверки")

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors))


class AssembledItem(BaseModel):
    """Строка после расчёта сумм"""
    item: FiscalDocumentItem
    line_total: Decimal


class AssembledDocument(BaseModel):
    """Рассчитанные суммы документа"""
    items: List[AssembledItem] = Field(default_factory=list)
    document_total: Decimal
    withheld_amount: Decimal


class EmissionResult(BaseModel):
    """
    Результат попытки эмиссии

    Ошибки валидации возвращаются здесь, а не исключением.
    Остальные сбои описываются полем kind и сообщением.
    """
    kind: EmissionOutcome = Field(..., description="Итог попытки")
    attempt_id: Optional[str] = Field(None, description="Идентификатор попытки")
    status: DocumentStatus = Field(..., description="Конечное состояние попытки")
    document: Optional[FiscalDocument] = Field(None, description="Авторизованный документ")
    errors: List[str] = Field(default_factory=list, description="Ошибки валидации")
    rejection_reason: Optional[str] = Field(None, description="Причина отказа органа")
    message: Optional[str] = Field(None, description="Описание сбоя")
    retryable: bool = Field(False, description="Безопасно ли повторить запрос")
    details: dict = Field(default_factory=dict, description="Данные для ручной сверки")

    @property
    def succeeded(self) -> bool:
        return self.kind == EmissionOutcome.AUTHORIZED
