"""
Доменные ошибки e-ZLA.

Каждая ошибка несёт строковый ``code``; ``http_status_for()`` переводит его
в HTTP-статус для JSON-обработчика в ``ezla.main`` и для ответов ITN.
"""


class EzlaError(Exception):
    """Базовая ошибка: ``message`` уходит клиенту, ``details`` дополняет её (field, id, attempts)."""

    def __init__(self, message: str, code: str = "EZLA_ERROR", details: dict | None = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(EzlaError):
    """Ошибка аутентификации: 401 Unauthorized."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="EZLA_AUTH_ERROR")


class AuthorizationError(EzlaError):
    """Ошибка авторизации: 403 Forbidden."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="EZLA_AUTHZ_ERROR")


class HashVerificationError(EzlaError):
    """Подпись сообщения платёжного шлюза не совпала: 403 Forbidden."""

    def __init__(self, message: str = "Invalid hash", details: dict | None = None):
        super().__init__(message, code="EZLA_HASH_MISMATCH", details=details)


class NotFoundError(EzlaError):
    """Сущность не найдена: 404 Not Found."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code="EZLA_NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class ConflictError(EzlaError):
    """Конфликт с текущим состоянием: 409 Conflict."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="EZLA_CONFLICT", details=details)


class ValidationError(EzlaError):
    """Ошибка доменной валидации: 422 Unprocessable Entity."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="EZLA_VALIDATION_ERROR", details=details)


class BadRequestError(EzlaError):
    """Некорректный или неполный запрос: 400 Bad Request."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="EZLA_BAD_REQUEST", details=details)


class UpstreamError(EzlaError):
    """Ошибка внешней интеграции (Med24): 502 Bad Gateway."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="EZLA_UPSTREAM_ERROR", details=details)


class ConfigurationError(EzlaError):
    """Отсутствует обязательная конфигурация: 500 для каждого запроса."""

    def __init__(self, message: str = "Server configuration error"):
        super().__init__(message, code="EZLA_CONFIG_ERROR")


STATUS_MAP: dict[str, int] = {
    "EZLA_AUTH_ERROR": 401,
    "EZLA_AUTHZ_ERROR": 403,
    "EZLA_HASH_MISMATCH": 403,
    "EZLA_NOT_FOUND": 404,
    "EZLA_CONFLICT": 409,
    "EZLA_VALIDATION_ERROR": 422,
    "EZLA_BAD_REQUEST": 400,
    "EZLA_UPSTREAM_ERROR": 502,
    "EZLA_CONFIG_ERROR": 500,
}


def http_status_for(exc: EzlaError) -> int:
    """Маппинг кода доменной ошибки на HTTP-статус (по умолчанию 500)."""
    return STATUS_MAP.get(exc.code, 500)


__all__ = [
    "EzlaError",
    "AuthenticationError",
    "AuthorizationError",
    "HashVerificationError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "BadRequestError",
    "UpstreamError",
    "ConfigurationError",
    "STATUS_MAP",
    "http_status_for",
]
