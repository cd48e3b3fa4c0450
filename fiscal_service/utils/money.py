"""
Денежная арифметика на Decimal
"""
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Хватает на точное произведение количества и цены в границах core.limits
MONEY_PRECISION = 60

Number = Union[Decimal, int, str]


def to_money(value: Number) -> Decimal:
    """
    Привести значение к денежному Decimal с двумя знаками

    Args:
        value: Decimal, int или строка

    Returns:
        Decimal, округлённый до копеек (ROUND_HALF_UP)
    """
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats")
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Сумма строки: количество × цена, округлённая до копеек"""
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        return to_money(Decimal(quantity) * Decimal(unit_price))


def money_sum(values: Iterable[Decimal]) -> Decimal:
    """Сумма денежных значений (пустая сумма = 0.00)"""
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        return to_money(sum(values, ZERO))


def decimal_places(value: Decimal) -> int:
    """Знаков после запятой без хвостовых нулей: 2.50 -> 1"""
    _, digits, exponent = value.as_tuple()
    while exponent < 0 and len(digits) > 1 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    return max(0, -exponent)
