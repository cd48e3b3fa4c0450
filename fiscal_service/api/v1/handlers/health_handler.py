"""
Health check handlers
"""
from fastapi import APIRouter, Depends

from fiscal_service.models.responses import HealthResponse
from fiscal_service.services.emission_service import EmissionService
from fiscal_service.api.dependencies import get_emission_service
from fiscal_service.config import get_settings

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthResponse)
@router.get("/", response_model=HealthResponse, include_in_schema=False)
async def health_check(
    emission_service: EmissionService = Depends(get_emission_service)
) -> HealthResponse:
    """
    Базовый health check
    Проверяет что сервис запущен
    """
    settings = get_settings()

    return HealthResponse(
        status="healthy",
        version=settings.APP_VERSION,
        authority_available=emission_service.authority_client.is_available(),
        registry_available=emission_service.registry.is_available()
    )


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(
    emission_service: EmissionService = Depends(get_emission_service)
) -> HealthResponse:
    """
    Readiness check для Kubernetes
    Проверяет что клиент налогового органа и реестр готовы
    """
    settings = get_settings()
    is_ready = emission_service.is_ready()

    return HealthResponse(
        status="ready" if is_ready else "not_ready",
        version=settings.APP_VERSION,
        authority_available=emission_service.authority_client.is_available(),
        registry_available=emission_service.registry.is_available()
    )
