"""
Валидация запроса на эмиссию фискального документа
"""
from typing import List

from fiscal_service.core.enums import DocumentType
from fiscal_service.core.limits import (
    MAX_COUNTERPARTY_NAME_LENGTH,
    MAX_SERIES_LENGTH,
    MAX_SERVICE_CODE_LENGTH
)
from fiscal_service.models.domain import ValidationResult
from fiscal_service.models.requests import EmitDocumentRequest
from fiscal_service.services.item_validator import validate_item
from fiscal_service.utils.tax_id import digits_only, is_valid_tax_id_length
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)

NAME_REQUIRED = "Counterparty name is required."
TAX_ID_REQUIRED = "Counterparty tax id required."
TAX_ID_INVALID = "Counterparty tax id invalid: expected 11 (CPF) or 14 (CNPJ) digits."
ADDRESS_REQUIRED = "Counterparty address is required."
ITEMS_REQUIRED = "At least one item required."
SERVICE_CODE_REQUIRED = "Service code required for service invoice."
NAME_TOO_LONG = f"Counterparty name exceeds {MAX_COUNTERPARTY_NAME_LENGTH} characters."
SERVICE_CODE_TOO_LONG = f"Service code exceeds {MAX_SERVICE_CODE_LENGTH} characters."
SERIES_TOO_LONG = f"Series exceeds {MAX_SERIES_LENGTH} characters."


def validate_document(request: EmitDocumentRequest) -> ValidationResult:
    """
    Полная проверка запроса перед эмиссией

    Правила применяются по порядку, ошибки накапливаются:
    пользователь получает все исправления за один запрос.
    Функция никогда не бросает исключений.

    Args:
        request: Запрос на эмиссию

    Returns:
        ValidationResult: valid=True и пустой список, либо список ошибок
    """
    errors: List[str] = []

    if not request.counterparty_name.strip():
        errors.append(NAME_REQUIRED)
    elif len(request.counterparty_name.strip()) > MAX_COUNTERPARTY_NAME_LENGTH:
        errors.append(NAME_TOO_LONG)

    # Сначала наличие, потом формат
    if not request.counterparty_tax_id.strip():
        errors.append(TAX_ID_REQUIRED)
    elif not is_valid_tax_id_length(request.counterparty_tax_id):
        errors.append(TAX_ID_INVALID)

    if not request.counterparty_address.strip():
        errors.append(ADDRESS_REQUIRED)

    if not request.items:
        errors.append(ITEMS_REQUIRED)
    else:
        for position, item in enumerate(request.items, start=1):
            errors.extend(validate_item(item, request.document_type, position))

    if request.document_type == DocumentType.SERVICE_INVOICE:
        if not request.service_code:
            errors.append(SERVICE_CODE_REQUIRED)
        elif len(request.service_code) > MAX_SERVICE_CODE_LENGTH:
            errors.append(SERVICE_CODE_TOO_LONG)

    # Серия задаётся опционально, иначе берётся из настроек
    if request.series and len(request.series) > MAX_SERIES_LENGTH:
        errors.append(SERIES_TOO_LONG)

    if errors:
        logger.info(
            "Document validation failed",
            document_type=request.document_type.value,
            errors_count=len(errors),
            tax_id_digits=len(digits_only(request.counterparty_tax_id))
        )

    return ValidationResult.from_errors(errors)
