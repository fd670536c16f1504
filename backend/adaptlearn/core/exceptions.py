# adaptlearn/core/exceptions.py
from fastapi import status


class AppException(Exception):
    """Базовое исключение для приложения"""
    retryable: bool = False

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail

class AuthenticationError(AppException):
    """Ошибка аутентификации"""
    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)

class ForbiddenError(AppException):
    """Действие запрещено (например, попытка перескочить закрытый модуль)"""
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)

class ValidationError(AppException):
    """Ошибка валидации данных"""
    def __init__(self, detail: str = "Validation error"):
        super().__init__(422, detail)

class NotFoundError(AppException):
    """Ресурс не найден (или принадлежит другому пользователю)"""
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)

class ConflictError(AppException):
    """Оптимистичное обновление проиграло гонку слишком много раз"""
    retryable = True

    def __init__(self, detail: str = "Concurrent update, please retry"):
        super().__init__(status.HTTP_409_CONFLICT, detail)

class ConflictIgnoredError(AppException):
    """
    Повтор уже выполненного действия. Не настоящая ошибка:
    движок всегда превращает её в успешный ответ.
    """
    def __init__(self, detail: str = "Already completed"):
        super().__init__(status.HTTP_409_CONFLICT, detail)

class GenerationError(AppException):
    """Генератор контента вернул непригодные данные"""
    def __init__(self, detail: str = "Content generation failed"):
        super().__init__(status.HTTP_502_BAD_GATEWAY, detail)

class GenerationTimeoutError(GenerationError):
    """Генератор не ответил за отведённое время"""
    retryable = True

    def __init__(self, detail: str = "Content generation timed out, please retry"):
        super().__init__(detail)
        self.status_code = status.HTTP_504_GATEWAY_TIMEOUT

class DatabaseError(AppException):
    """Ошибка базы данных"""
    def __init__(self, detail: str = "Database error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail)

class RateLimitError(AppException):
    """Ошибка превышения лимита запросов"""
    def __init__(self, detail: str = "Too many requests"):
        super().__init__(status.HTTP_429_TOO_MANY_REQUESTS, detail)
