import logging
from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

'''
Вспомогательная функция _error_response()

Принимает параметры status_code, detail, code, request. Возвращает стандартный FastAPI-ответ с JSON-телом.

Собираем единый формат ошибки.
'''
def _error_response(
    *,
    status_code: int,
    detail: str,
    code: str,
    request: Request,
    extra: dict | None = None,
) -> JSONResponse:
    content = {
        "detail": detail,
        "code": code,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
    }
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content)

# Базовый класс AppError
class AppError(Exception):
    status_code = 400
    code = "app_error"
    detail = "Application error"

    def __init__(self, detail: str | None = None, code: str | None = None):
        if detail is not None:
            self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(self.detail)


# ================
# Кастомные ошибки
# ================

class NotFound(AppError):
    status_code = 404
    code = "not_found"
    detail = "Resource not found"


class PermissionDeniedError(AppError):
    status_code = 403
    code = "permission_denied"
    detail = "You are not allowed to perform this action"


class ConflictError(AppError):
    """Нарушение уникальности: slug, имя тега, username, email"""
    status_code = 409
    code = "conflict"
    detail = "Resource already exists"


class ValidationFailed(AppError):
    """Неверные данные, обнаруженные уже после валидации схемы"""
    status_code = 400
    code = "validation_failed"
    detail = "Invalid data"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_response(
        status_code=exc.status_code,
        detail=exc.detail,
        code=exc.code,
        request=request,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    response = _error_response(
        status_code=exc.status_code,
        detail=detail,
        code="http_error",
        request=request,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def _describe_validation_error(error: dict) -> str:
    # loc вида ("body", "title") -> "title"
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    message = error.get("msg", "Invalid value")
    if location:
        return f"{'.'.join(location)}: {message}"
    return message


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors = exc.errors()
    detail = _describe_validation_error(errors[0]) if errors else "Validation error"
    return _error_response(
        status_code=422,
        detail=detail,
        code="validation_error",
        request=request,
        extra={
            "errors": [_describe_validation_error(error) for error in errors],
        },
    )


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
) -> JSONResponse:
    return _error_response(
        status_code=429,
        detail=f"Rate limit exceeded: {exc.detail}",
        code="rate_limit_exceeded",
        request=request,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(
        status_code=500,
        detail="Internal server error",
        code="internal_server_error",
        request=request,
    )
