"""
Конфигурация приложения через Pydantic Settings
"""
from decimal import Decimal
from functools import cached_property
from typing import Dict, List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fiscal_service.core.enums import AuthorityMode, DocumentType, RegistryBackend, UserRole
from fiscal_service.core.limits import MAX_SERIES_LENGTH


class Settings(BaseSettings):
    """Настройки приложения из переменных окружения"""

    # Application Settings
    APP_NAME: str = "fiscal-emission-service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Authority Settings
    AUTHORITY_MODE: AuthorityMode = AuthorityMode.SIMULATED
    AUTHORITY_BASE_URL: str = ""
    AUTHORITY_API_KEY: str = ""
    AUTHORITY_TIMEOUT_SECONDS: float = 30.0

    # Sandbox (simulated authority) Settings
    SIMULATED_DELAY_SECONDS: float = 0.5
    SIMULATED_STORAGE_URL: str = "https://sandbox.fiscal.local"
    SIMULATED_REJECTED_TAX_IDS: str = ""

    # Registry Settings
    REGISTRY_BACKEND: RegistryBackend = RegistryBackend.MEMORY
    DATABASE_URL: str = "sqlite:///./fiscal.db"
    DATABASE_WORKERS: int = 4

    # Fiscal Settings
    GOODS_INVOICE_SERIES: str = Field("1", min_length=1, max_length=MAX_SERIES_LENGTH)
    SERVICE_INVOICE_SERIES: str = Field("900", min_length=1, max_length=MAX_SERIES_LENGTH)
    SERVICE_TAX_WITHHOLDING_RATE: Decimal = Decimal("0.05")
    PERSIST_REJECTED_ATTEMPTS: bool = False

    # Auth Settings: "token:role:subject,token:role:subject"
    API_TOKENS: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Парсинг CORS origins из строки в список"""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def simulated_rejected_tax_ids_list(self) -> List[str]:
        """ИНН (CPF/CNPJ), которые песочница отклоняет"""
        return [
            tax_id.strip()
            for tax_id in self.SIMULATED_REJECTED_TAX_IDS.split(",")
            if tax_id.strip()
        ]

    @property
    def default_series(self) -> Dict[DocumentType, str]:
        """Серия по умолчанию для каждого типа документа"""
        return {
            DocumentType.GOODS_INVOICE: self.GOODS_INVOICE_SERIES,
            DocumentType.SERVICE_INVOICE: self.SERVICE_INVOICE_SERIES,
        }

    @field_validator("API_TOKENS")
    @classmethod
    def check_api_tokens(cls, v: str) -> str:
        """Ошибка в API_TOKENS останавливает старт, а не каждый запрос"""
        parse_api_tokens(v)
        return v

    @cached_property
    def api_tokens_map(self) -> Dict[str, Tuple[UserRole, str]]:
        """Словарь token -> (role, subject), разбирается один раз"""
        return parse_api_tokens(self.API_TOKENS)


def parse_api_tokens(raw: str) -> Dict[str, Tuple[UserRole, str]]:
    """
    Парсинг строки "token:role:subject,token:role" в словарь

    Записи без subject получают subject равный роли.

    Raises:
        ValueError: Запись без роли или с неизвестной ролью
    """
    tokens: Dict[str, Tuple[UserRole, str]] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = [part.strip() for part in entry.split(":")]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValueError(f"API_TOKENS entry must be token:role[:subject], got {entry!r}")
        try:
            role = UserRole(parts[1])
        except ValueError:
            raise ValueError(f"Unknown role {parts[1]!r} in API_TOKENS")
        subject = parts[2] if len(parts) > 2 and parts[2] else role.value
        tokens[parts[0]] = (role, subject)
    return tokens


# Singleton instance
_settings: Settings = None


def get_settings() -> Settings:
    """Получить настройки (singleton)"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
