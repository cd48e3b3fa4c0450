"""
Расчёт сумм фискального документа
"""
from decimal import Decimal
from typing import List, Optional

from fiscal_service.core.enums import DocumentType
from fiscal_service.models.domain import AssembledDocument, AssembledItem, FiscalDocumentItem
from fiscal_service.models.requests import DocumentItemRequest
from fiscal_service.utils.money import ZERO, line_total, money_sum, to_money

ITEM_CODE_PREFIX = "ITEM-"


class DocumentAssembler:
    """
    Сборщик документа: коды строк, суммы строк, итог, удержанный налог

    Чистый и детерминированный: не хранит состояния между вызовами.
    """

    def __init__(self, withholding_rate: Decimal = Decimal("0.05")):
        """
        Args:
            withholding_rate: Ставка удерживаемого налога на услуги (ISS)
        """
        self.withholding_rate = Decimal(withholding_rate)

    def assemble(
        self,
        document_type: DocumentType,
        items: List[DocumentItemRequest],
        service_code: Optional[str] = None,
        tax_withheld: bool = False
    ) -> AssembledDocument:
        """
        Рассчитать суммы по проверенному списку строк

        Args:
            document_type: Тип документа
            items: Строки, прошедшие валидацию
            service_code: Код услуги документа (NFS-e)
            tax_withheld: Удерживается ли налог (NFS-e)

        Returns:
            AssembledDocument с суммами строк, итогом и удержанием
        """
        assembled = [
            self._assemble_item(document_type, item, position, service_code)
            for position, item in enumerate(items, start=1)
        ]
        document_total = money_sum(entry.line_total for entry in assembled)

        withheld_amount = ZERO
        if document_type == DocumentType.SERVICE_INVOICE and tax_withheld:
            withheld_amount = to_money(document_total * self.withholding_rate)

        return AssembledDocument(
            items=assembled,
            document_total=document_total,
            withheld_amount=withheld_amount
        )

    def _assemble_item(
        self,
        document_type: DocumentType,
        item: DocumentItemRequest,
        position: int,
        service_code: Optional[str]
    ) -> AssembledItem:
        """Построить строку документа с кодом ITEM-n"""
        if document_type == DocumentType.GOODS_INVOICE:
            ncm, cfop, item_service_code = item.ncm, item.cfop, None
        else:
            # Строка может переопределить код услуги документа
            ncm, cfop, item_service_code = None, None, item.service_code or service_code

        document_item = FiscalDocumentItem(
            code=f"{ITEM_CODE_PREFIX}{position}",
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            ncm=ncm,
            cfop=cfop,
            service_code=item_service_code
        )
        return AssembledItem(
            item=document_item,
            line_total=line_total(item.quantity, item.unit_price)
        )
