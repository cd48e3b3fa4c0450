"""
Реестр документов на SQLAlchemy
"""
import asyncio
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text,
    UniqueConstraint, create_engine, select, update
)
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, relationship, selectinload, sessionmaker
from sqlalchemy.types import TypeDecorator

from fiscal_service.core.enums import DocumentStatus, DocumentType
from fiscal_service.core.exceptions import DocumentNotFoundError, NumberingError, PersistenceError
from fiscal_service.core.limits import (
    MAX_CFOP_LENGTH,
    MAX_COUNTERPARTY_NAME_LENGTH,
    MAX_NCM_LENGTH,
    MAX_SERIES_LENGTH,
    MAX_SERVICE_CODE_LENGTH
)
from fiscal_service.infrastructure.registry.base_registry import BaseDocumentRegistry
from fiscal_service.models.domain import DocumentFilter, FiscalDocument, FiscalDocumentItem
from fiscal_service.utils.tax_id import digits_only
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)

ALLOCATION_BACKOFF_SECONDS = 0.01

Base = declarative_base()


class DecimalString(TypeDecorator):
    """Decimal хранится строкой: без потери точности в любом диалекте"""
    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


class DocumentRow(Base):
    """Заголовок фискального документа"""
    __tablename__ = "fiscal_documents"
    __table_args__ = (
        UniqueConstraint("series", "number", name="uq_fiscal_documents_series_number"),
    )

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False)
    number = Column(Integer, nullable=True)
    series = Column(String(MAX_SERIES_LENGTH), nullable=False, index=True)
    document_type = Column(String(32), nullable=False, index=True)
    status = Column(String(32), nullable=False, index=True)

    counterparty_name = Column(String(MAX_COUNTERPARTY_NAME_LENGTH), nullable=False)
    counterparty_tax_id = Column(String(14), nullable=False, index=True)
    counterparty_address = Column(Text, nullable=False)

    issued_at = Column(DateTime(timezone=True), nullable=True)
    external_document_ref = Column(Text, nullable=True)
    external_render_ref = Column(Text, nullable=True)

    total_amount = Column(DecimalString, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    service_code = Column(String(MAX_SERVICE_CODE_LENGTH), nullable=True)
    tax_withheld = Column(Boolean, nullable=False, default=False)
    withheld_amount = Column(DecimalString, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)

    items = relationship(
        "DocumentItemRow",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentItemRow.position"
    )


class DocumentItemRow(Base):
    """Строка фискального документа"""
    __tablename__ = "fiscal_document_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(String(36), ForeignKey("fiscal_documents.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    code = Column(String(20), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(DecimalString, nullable=False)
    unit_price = Column(DecimalString, nullable=False)
    ncm = Column(String(MAX_NCM_LENGTH), nullable=True)
    cfop = Column(String(MAX_CFOP_LENGTH), nullable=True)
    service_code = Column(String(MAX_SERVICE_CODE_LENGTH), nullable=True)

    document = relationship("DocumentRow", back_populates="items")


class SeriesCounterRow(Base):
    """Последний выделенный номер в серии"""
    __tablename__ = "fiscal_series_counters"

    series = Column(String(MAX_SERIES_LENGTH), primary_key=True)
    last_number = Column(Integer, nullable=False)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite теряет tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlDocumentRegistry(BaseDocumentRegistry):
    """
    Реестр в реляционной БД

    Номер выделяется compare-and-swap обновлением счётчика серии
    (UPDATE ... WHERE last_number = :current) с повтором при конкуренции.
    Блокирующие вызовы SQLAlchemy идут в отдельном пуле потоков.
    """

    def __init__(
        self,
        database_url: str,
        workers: int = 4,
        max_allocation_attempts: int = 10
    ):
        """
        Args:
            database_url: SQLAlchemy URL (sqlite:///..., postgresql://...)
            workers: Размер пула потоков для запросов к БД
            max_allocation_attempts: Повторы compare-and-swap при конкуренции
        """
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, connect_args=connect_args)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self.max_allocation_attempts = max_allocation_attempts
        self._ready = False

        logger.info(
            "SQL document registry configured",
            dialect=self.engine.dialect.name,
            workers=workers
        )

    def initialize(self) -> None:
        """Создать таблицы если их нет"""
        try:
            Base.metadata.create_all(self.engine)
            self._ready = True
            logger.info("SQL document registry initialized")
        except SQLAlchemyError as e:
            logger.error("Failed to initialize SQL registry", error=str(e))
            raise PersistenceError(
                f"Failed to initialize document registry: {str(e)}",
                details={"error": str(e)}
            )

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    async def allocate_number(self, series: str) -> int:
        number = await self._run(self._allocate_number, series)
        logger.debug("Document number allocated", series=series, number=number)
        return number

    def _allocate_number(self, series: str) -> int:
        for attempt in range(1, self.max_allocation_attempts + 1):
            try:
                with self.session_factory.begin() as session:
                    current = session.execute(
                        select(SeriesCounterRow.last_number)
                        .where(SeriesCounterRow.series == series)
                    ).scalar_one_or_none()

                    if current is None:
                        # Конкурент может создать счётчик первым: IntegrityError при commit
                        session.add(SeriesCounterRow(series=series, last_number=1))
                        return 1

                    result = session.execute(
                        update(SeriesCounterRow)
                        .where(SeriesCounterRow.series == series)
                        .where(SeriesCounterRow.last_number == current)
                        .values(last_number=current + 1)
                    )
                    if result.rowcount == 1:
                        return current + 1
            except (IntegrityError, OperationalError) as e:
                # Конкурентная запись в счётчик серии (или блокировка SQLite)
                logger.debug("Series counter write conflict", series=series, error=str(e))
            except SQLAlchemyError as e:
                raise NumberingError(
                    f"Failed to allocate number in series {series}: {str(e)}",
                    details={"series": series, "error": str(e)}
                )

            logger.warning("Series counter contention", series=series, attempt=attempt)
            time.sleep(ALLOCATION_BACKOFF_SECONDS * attempt)

        raise NumberingError(
            f"Could not allocate number in series {series} after "
            f"{self.max_allocation_attempts} attempts",
            details={"series": series}
        )

    async def create_document(
        self,
        header: FiscalDocument,
        items: List[FiscalDocumentItem]
    ) -> str:
        return await self._run(self._create_document, header, items)

    def _create_document(self, header: FiscalDocument, items: List[FiscalDocumentItem]) -> str:
        document_id = str(uuid.uuid4())
        row = DocumentRow(
            id=document_id,
            number=header.number,
            series=header.series,
            document_type=header.document_type.value,
            status=header.status.value,
            counterparty_name=header.counterparty_name,
            counterparty_tax_id=header.counterparty_tax_id,
            counterparty_address=header.counterparty_address,
            issued_at=header.issued_at,
            external_document_ref=header.external_document_ref,
            external_render_ref=header.external_render_ref,
            total_amount=header.total_amount,
            rejection_reason=header.rejection_reason,
            service_code=header.service_code,
            tax_withheld=header.tax_withheld,
            withheld_amount=header.withheld_amount,
            created_at=datetime.now(timezone.utc),
            items=[
                DocumentItemRow(
                    position=position,
                    code=item.code,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    ncm=item.ncm,
                    cfop=item.cfop,
                    service_code=item.service_code
                )
                for position, item in enumerate(items, start=1)
            ]
        )

        try:
            with self.session_factory.begin() as session:
                session.add(row)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to persist document: {str(e)}",
                details={
                    "series": header.series,
                    "number": header.number,
                    "error": str(e)
                }
            )

        return document_id

    async def list_documents(self, document_filter: DocumentFilter) -> List[FiscalDocument]:
        return await self._run(self._list_documents, document_filter)

    def _list_documents(self, document_filter: DocumentFilter) -> List[FiscalDocument]:
        query = select(DocumentRow).options(selectinload(DocumentRow.items))

        if document_filter.document_type:
            query = query.where(DocumentRow.document_type == document_filter.document_type.value)
        if document_filter.status:
            query = query.where(DocumentRow.status == document_filter.status.value)
        if document_filter.series:
            query = query.where(DocumentRow.series == document_filter.series)
        if document_filter.counterparty_tax_id:
            query = query.where(
                DocumentRow.counterparty_tax_id == digits_only(document_filter.counterparty_tax_id)
            )

        query = query.order_by(DocumentRow.pk.desc()).limit(document_filter.limit)

        with self.session_factory() as session:
            rows = session.execute(query).scalars().all()
            return [self._to_domain(row) for row in rows]

    async def get_document_with_items(self, document_id: str) -> FiscalDocument:
        return await self._run(self._get_document_with_items, document_id)

    def _get_document_with_items(self, document_id: str) -> FiscalDocument:
        with self.session_factory() as session:
            row = session.execute(
                select(DocumentRow)
                .options(selectinload(DocumentRow.items))
                .where(DocumentRow.id == document_id)
            ).scalar_one_or_none()

            if row is None:
                raise DocumentNotFoundError(
                    f"Document {document_id} not found",
                    details={"document_id": document_id}
                )
            return self._to_domain(row)

    @staticmethod
    def _to_domain(row: DocumentRow) -> FiscalDocument:
        return FiscalDocument(
            id=row.id,
            number=row.number,
            series=row.series,
            document_type=DocumentType(row.document_type),
            status=DocumentStatus(row.status),
            counterparty_name=row.counterparty_name,
            counterparty_tax_id=row.counterparty_tax_id,
            counterparty_address=row.counterparty_address,
            issued_at=_as_utc(row.issued_at),
            external_document_ref=row.external_document_ref,
            external_render_ref=row.external_render_ref,
            total_amount=row.total_amount,
            rejection_reason=row.rejection_reason,
            service_code=row.service_code,
            tax_withheld=row.tax_withheld,
            withheld_amount=row.withheld_amount,
            items=[
                FiscalDocumentItem(
                    code=item.code,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    ncm=item.ncm,
                    cfop=item.cfop,
                    service_code=item.service_code
                )
                for item in row.items
            ]
        )

    def is_available(self) -> bool:
        return self._ready

    def cleanup(self) -> None:
        logger.info("Closing SQL document registry")
        self.executor.shutdown(wait=True)
        self.engine.dispose()
