"""
Утилиты для работы с CPF/CNPJ
"""
import re

INDIVIDUAL_TAX_ID_LENGTH = 11  # CPF
ORGANIZATION_TAX_ID_LENGTH = 14  # CNPJ

_NON_DIGITS = re.compile(r"\D")


def digits_only(value: str) -> str:
    """Оставить только цифры"""
    return _NON_DIGITS.sub("", value or "")


def is_valid_tax_id_length(value: str) -> bool:
    """
    Проверка длины CPF/CNPJ после удаления маски

    Проверяется только длина; контрольные цифры не считаются.
    """
    return len(digits_only(value)) in (
        INDIVIDUAL_TAX_ID_LENGTH,
        ORGANIZATION_TAX_ID_LENGTH,
    )


def mask_tax_id(value: str) -> str:
    """
    Маскировать CPF/CNPJ для логов: видны только последние 4 цифры
    """
    digits = digits_only(value)
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]
