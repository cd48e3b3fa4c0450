"""
FastAPI Dependencies для Dependency Injection
"""
from functools import lru_cache

from fiscal_service.config import get_settings
from fiscal_service.core.enums import AuthorityMode, RegistryBackend
from fiscal_service.core.exceptions import ConfigurationError
from fiscal_service.infrastructure.authority_clients.base_client import BaseAuthorityClient
from fiscal_service.infrastructure.authority_clients.http_client import HttpAuthorityClient
from fiscal_service.infrastructure.authority_clients.simulated_client import SimulatedAuthorityClient
from fiscal_service.infrastructure.registry.base_registry import BaseDocumentRegistry
from fiscal_service.infrastructure.registry.memory_registry import InMemoryDocumentRegistry
from fiscal_service.infrastructure.registry.sql_registry import SqlDocumentRegistry
from fiscal_service.services.document_assembler import DocumentAssembler
from fiscal_service.services.emission_service import EmissionService
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache()
def get_authority_client() -> BaseAuthorityClient:
    """
    Получить клиент налогового органа (singleton)
    Вариант выбирается настройкой AUTHORITY_MODE
    """
    settings = get_settings()

    if settings.AUTHORITY_MODE == AuthorityMode.SIMULATED:
        return SimulatedAuthorityClient(
            delay_seconds=settings.SIMULATED_DELAY_SECONDS,
            storage_url=settings.SIMULATED_STORAGE_URL,
            rejected_tax_ids=settings.simulated_rejected_tax_ids_list
        )

    if settings.AUTHORITY_MODE == AuthorityMode.LIVE:
        return HttpAuthorityClient(
            base_url=settings.AUTHORITY_BASE_URL,
            api_key=settings.AUTHORITY_API_KEY,
            timeout_seconds=settings.AUTHORITY_TIMEOUT_SECONDS
        )

    raise ConfigurationError(f"Unknown authority mode: {settings.AUTHORITY_MODE}")


@lru_cache()
def get_document_registry() -> BaseDocumentRegistry:
    """
    Получить реестр документов (singleton)
    Инициализируется один раз и переиспользуется
    """
    settings = get_settings()

    if settings.REGISTRY_BACKEND == RegistryBackend.MEMORY:
        registry = InMemoryDocumentRegistry()
    elif settings.REGISTRY_BACKEND == RegistryBackend.SQL:
        registry = SqlDocumentRegistry(
            database_url=settings.DATABASE_URL,
            workers=settings.DATABASE_WORKERS
        )
    else:
        raise ConfigurationError(f"Unknown registry backend: {settings.REGISTRY_BACKEND}")

    registry.initialize()
    return registry


@lru_cache()
def get_document_assembler() -> DocumentAssembler:
    """Получить инстанс DocumentAssembler (singleton)"""
    settings = get_settings()
    return DocumentAssembler(withholding_rate=settings.SERVICE_TAX_WITHHOLDING_RATE)


@lru_cache()
def get_emission_service() -> EmissionService:
    """Получить инстанс EmissionService (singleton)"""
    settings = get_settings()

    return EmissionService(
        authority_client=get_authority_client(),
        registry=get_document_registry(),
        assembler=get_document_assembler(),
        default_series=settings.default_series,
        authority_timeout_seconds=settings.AUTHORITY_TIMEOUT_SECONDS,
        persist_rejected_attempts=settings.PERSIST_REJECTED_ATTEMPTS
    )


def reset_dependencies() -> None:
    """Сбросить singleton инстансы с очисткой ресурсов"""
    if get_authority_client.cache_info().currsize:
        get_authority_client().cleanup()
    if get_document_registry.cache_info().currsize:
        get_document_registry().cleanup()

    get_emission_service.cache_clear()
    get_document_assembler.cache_clear()
    get_document_registry.cache_clear()
    get_authority_client.cache_clear()
