"""
FastAPI приложение - точка входа сервиса фискальных документов
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from fiscal_service.config import get_settings
from fiscal_service.core.logging import setup_logging, get_logger
from fiscal_service.api.dependencies import get_emission_service, reset_dependencies
from fiscal_service.api.v1.router import api_router

# Настройка логирования при импорте
settings = get_settings()
setup_logging(log_level=settings.LOG_LEVEL, is_debug=settings.DEBUG)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle events для FastAPI
    Выполняется при старте и остановке приложения
    """
    logger.info(
        "Starting Fiscal Emission Service",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        authority_mode=settings.AUTHORITY_MODE.value,
        registry_backend=settings.REGISTRY_BACKEND.value,
        debug=settings.DEBUG
    )

    # Клиент органа и реестр создаются до первого запроса
    get_emission_service()

    yield

    logger.info("Shutting down Fiscal Emission Service")
    reset_dependencies()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Fiscal document emission and validation service (NF-e / NFS-e)",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/", include_in_schema=False)
async def root():
    """Редирект с корня на документацию"""
    return RedirectResponse(url="/docs")


@app.get("/ping", include_in_schema=False)
async def ping():
    """Простой ping endpoint"""
    return {"status": "pong"}


if __name__ == "__main__":
    import uvicorn

    logger.info(
        "Starting server",
        host=settings.HOST,
        port=settings.PORT
    )

    uvicorn.run(
        "fiscal_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
