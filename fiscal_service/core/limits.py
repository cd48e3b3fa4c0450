"""
Границы полей документа

Совпадают с размерами колонок реестра и с форматами NF-e:
qCom 11v0-4, vUnCom 11v0-10, vProd 13v2.
"""
from decimal import Decimal

MAX_COUNTERPARTY_NAME_LENGTH = 255
MAX_SERIES_LENGTH = 20
MAX_SERVICE_CODE_LENGTH = 20
MAX_NCM_LENGTH = 16
MAX_CFOP_LENGTH = 10

MAX_QUANTITY = Decimal("99999999999.9999")
MAX_QUANTITY_PLACES = 4
MAX_UNIT_PRICE = Decimal("99999999999.9999999999")
MAX_UNIT_PRICE_PLACES = 10
MAX_LINE_TOTAL = Decimal("9999999999999.99")
