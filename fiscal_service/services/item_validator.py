"""
Валидация строки фискального документа
"""
from decimal import Decimal
from typing import List, Optional

from fiscal_service.core.enums import DocumentType
from fiscal_service.core.limits import (
    MAX_CFOP_LENGTH,
    MAX_LINE_TOTAL,
    MAX_NCM_LENGTH,
    MAX_QUANTITY,
    MAX_QUANTITY_PLACES,
    MAX_SERVICE_CODE_LENGTH,
    MAX_UNIT_PRICE,
    MAX_UNIT_PRICE_PLACES
)
from fiscal_service.models.requests import DocumentItemRequest
from fiscal_service.utils.money import decimal_places, line_total

MIN_NCM_LENGTH = 2


def _is_positive(value: Optional[Decimal]) -> bool:
    return value is not None and Decimal(value).is_finite() and value > 0


def _check_amount(
    value: Optional[Decimal],
    label: str,
    maximum: Decimal,
    max_places: int,
    prefix: str,
    errors: List[str]
) -> bool:
    """Проверка количества или цены; True если значение годно для расчёта"""
    if not _is_positive(value):
        errors.append(f"{prefix} {label} must be greater than zero.")
        return False
    if value > maximum:
        errors.append(f"{prefix} {label} exceeds the maximum of {maximum}.")
        return False
    if decimal_places(value) > max_places:
        errors.append(f"{prefix} {label} allows at most {max_places} decimal places.")
        return False
    return True


def validate_item(
    item: DocumentItemRequest,
    document_type: DocumentType,
    position: int
) -> List[str]:
    """
    Проверка одной строки документа

    Все нарушения возвращаются списком, проверка не прерывается
    на первой ошибке.

    Args:
        item: Строка документа
        document_type: Тип документа
        position: Позиция строки, начиная с 1

    Returns:
        Список ошибок с префиксом "Item N:" (пустой если строка валидна)
    """
    prefix = f"Item {position}:"
    errors: List[str] = []

    quantity_ok = _check_amount(
        item.quantity, "quantity", MAX_QUANTITY, MAX_QUANTITY_PLACES, prefix, errors
    )
    price_ok = _check_amount(
        item.unit_price, "unit price", MAX_UNIT_PRICE, MAX_UNIT_PRICE_PLACES, prefix, errors
    )
    if quantity_ok and price_ok and line_total(item.quantity, item.unit_price) > MAX_LINE_TOTAL:
        errors.append(f"{prefix} line total exceeds the maximum of {MAX_LINE_TOTAL}.")

    if document_type == DocumentType.GOODS_INVOICE:
        if not item.ncm or len(item.ncm) < MIN_NCM_LENGTH:
            errors.append(f"{prefix} NCM required for goods invoice.")
        elif len(item.ncm) > MAX_NCM_LENGTH:
            errors.append(f"{prefix} NCM exceeds {MAX_NCM_LENGTH} characters.")
        if not item.cfop:
            errors.append(f"{prefix} CFOP required for goods invoice.")
        elif len(item.cfop) > MAX_CFOP_LENGTH:
            errors.append(f"{prefix} CFOP exceeds {MAX_CFOP_LENGTH} characters.")
    elif item.service_code and len(item.service_code) > MAX_SERVICE_CODE_LENGTH:
        errors.append(f"{prefix} service code exceeds {MAX_SERVICE_CODE_LENGTH} characters.")

    return errors
