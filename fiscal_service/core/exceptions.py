"""
Кастомные исключения для сервиса фискальных документов
"""


class FiscalServiceException(Exception):
    """Базовое исключение для сервиса"""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(FiscalServiceException):
    """Ошибка конфигурации"""
    pass


class AuthorityUnavailableError(FiscalServiceException):
    """Налоговый орган недоступен: транспорт, таймаут"""
    pass


class MalformedAuthorityResponseError(AuthorityUnavailableError):
    """Ответ налогового органа не удалось разобрать"""
    pass


class PersistenceError(FiscalServiceException):
    """Ошибка записи в реестр документов"""
    pass


class NumberingError(PersistenceError):
    """Не удалось выделить номер документа"""
    pass


class DocumentNotFoundError(FiscalServiceException):
    """Документ не найден"""
    pass


class InvalidTransitionError(FiscalServiceException):
    """Недопустимый переход состояния эмиссии"""
    pass


class AuthenticationError(FiscalServiceException):
    """Отсутствует или неизвестен bearer токен"""
    pass


class PermissionDeniedError(FiscalServiceException):
    """Недостаточно прав для операции"""
    pass
