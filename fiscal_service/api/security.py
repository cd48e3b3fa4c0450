"""
Проверка bearer токенов и ролей

Токены выдаёт внешний сервис аутентификации; здесь только
сопоставление токена с ролью и проверка доступа.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from fiscal_service.config import get_settings
from fiscal_service.core.enums import UserRole
from fiscal_service.core.exceptions import AuthenticationError, PermissionDeniedError
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)

CONFIGURATION_ROLES = (UserRole.MASTER, UserRole.ADMIN)


@dataclass(frozen=True)
class Principal:
    """Аутентифицированный пользователь"""
    subject: str
    role: UserRole


def resolve_principal(authorization: Optional[str]) -> Principal:
    """
    Найти пользователя по заголовку Authorization

    Raises:
        AuthenticationError: Заголовок отсутствует или токен неизвестен
    """
    if not authorization:
        raise AuthenticationError("Missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must use the Bearer scheme")

    entry = get_settings().api_tokens_map.get(token.strip())
    if entry is None:
        raise AuthenticationError("Unknown bearer token")

    role, subject = entry
    return Principal(subject=subject, role=role)


def ensure_role(principal: Principal, *roles: UserRole) -> None:
    """
    Raises:
        PermissionDeniedError: Роль пользователя не входит в roles
    """
    if principal.role not in roles:
        raise PermissionDeniedError(
            f"Role {principal.role.value} is not allowed to perform this operation",
            details={"required_roles": [role.value for role in roles]}
        )


async def get_current_principal(
    authorization: Optional[str] = Header(None)
) -> Principal:
    """Dependency: аутентифицированный пользователь или 401"""
    try:
        return resolve_principal(authorization)
    except AuthenticationError as e:
        logger.warning("Authentication failed", error=e.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Authentication failed", "message": e.message},
            headers={"WWW-Authenticate": "Bearer"}
        )


async def require_configuration_role(
    principal: Principal = Depends(get_current_principal)
) -> Principal:
    """Dependency: только master/admin, иначе 403"""
    try:
        ensure_role(principal, *CONFIGURATION_ROLES)
    except PermissionDeniedError as e:
        logger.warning("Permission denied", subject=principal.subject, role=principal.role.value)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Permission denied", "message": e.message, "details": e.details}
        )
    return principal
