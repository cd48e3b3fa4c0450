"""
Enums для типобезопасности
"""
from enum import Enum


class DocumentType(str, Enum):
    """Типы фискальных документов"""
    GOODS_INVOICE = "goods_invoice"  # NF-e (товары)
    SERVICE_INVOICE = "service_invoice"  # NFS-e (услуги)


class DocumentStatus(str, Enum):
    """Статусы жизненного цикла документа"""
    DRAFT = "draft"  # Только в памяти
    SUBMITTING = "submitting"
    AUTHORIZED = "authorized"
    REJECTED = "rejected"
    FAILED = "failed"


class EmissionOutcome(str, Enum):
    """Итог попытки эмиссии"""
    AUTHORIZED = "authorized"
    VALIDATION_FAILED = "validation_failed"
    REJECTED = "rejected"
    UNAVAILABLE = "unavailable"
    PERSISTENCE_FAILED = "persistence_failed"


class AuthorityMode(str, Enum):
    """Варианты клиента налогового органа"""
    SIMULATED = "simulated"
    LIVE = "live"


class RegistryBackend(str, Enum):
    """Хранилища документов"""
    MEMORY = "memory"
    SQL = "sql"


class UserRole(str, Enum):
    """Роли пользователей back office"""
    MASTER = "master"
    ADMIN = "admin"
    EMPLOYEE = "employee"
    CLIENT = "client"
