"""
Pydantic модели для входящих запросов
"""
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from fiscal_service.core.enums import DocumentType


class DocumentItemRequest(BaseModel):
    """Строка документа в запросе (черновик)"""
    description: str = Field("", description="Описание товара или услуги")
    quantity: Optional[Decimal] = Field(None, description="Количество")
    unit_price: Optional[Decimal] = Field(None, description="Цена за единицу")
    ncm: Optional[str] = Field(None, description="NCM (только NF-e)")
    cfop: Optional[str] = Field(None, description="CFOP (только NF-e)")
    service_code: Optional[str] = Field(None, description="Код услуги строки (NFS-e)")

    @field_validator("ncm", "cfop", "service_code")
    @classmethod
    def strip_codes(cls, v: Optional[str]) -> Optional[str]:
        """Пустые коды приводим к None"""
        if v is None:
            return None
        v = v.strip()
        return v or None


class EmitDocumentRequest(BaseModel):
    """
    Запрос на эмиссию документа

    Бизнес-правила здесь не проверяются: неполный запрос
    должен дойти до валидатора и получить полный список ошибок.
    """
    document_type: DocumentType = Field(..., description="Тип документа")
    counterparty_name: str = Field("", description="Имя контрагента")
    counterparty_tax_id: str = Field("", description="CPF/CNPJ контрагента")
    counterparty_address: str = Field("", description="Адрес контрагента")
    items: List[DocumentItemRequest] = Field(default_factory=list, description="Строки документа")
    series: Optional[str] = Field(None, description="Серия (по умолчанию из настроек)")
    service_code: Optional[str] = Field(None, description="Код услуги LC 116 (NFS-e)")
    tax_withheld: bool = Field(False, description="ISS удержан у источника (NFS-e)")

    @field_validator("counterparty_name", "counterparty_tax_id", "counterparty_address", mode="before")
    @classmethod
    def null_to_empty(cls, v):
        """null в JSON считаем незаполненным полем"""
        return "" if v is None else v

    @field_validator("series", "service_code")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    class Config:
        json_schema_extra = {
            "example": {
                "document_type": "service_invoice",
                "counterparty_name": "Construtora Exemplo Ltda",
                "counterparty_tax_id": "12.345.678/0001-90",
                "counterparty_address": "Rua das Obras, 100 - Centro, São Paulo/SP",
                "items": [
                    {
                        "description": "Execução de alvenaria - Obra 12",
                        "quantity": "1",
                        "unit_price": "500.00"
                    }
                ],
                "service_code": "07.02",
                "tax_withheld": False
            }
        }
