from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class AppError(Exception):
    """Base application error; rendered as {"error": message, "code": code}."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    def __init__(self, message: str = "Missing data"):
        super().__init__(message, code="VALIDATION_ERROR", status_code=status.HTTP_400_BAD_REQUEST)


class VerificationFailure(AppError):
    """Chain verifier rejected the transaction or could not reach a verdict."""

    def __init__(self, message: str = "Invalid or fake transaction.", code: str = "INVALID_TRANSACTION"):
        super().__init__(message, code=code, status_code=status.HTTP_400_BAD_REQUEST)


class DuplicateError(AppError):
    # 400 rather than 409: clients already branch on 400 for this case.
    def __init__(self, message: str = "Duplicate transaction detected"):
        super().__init__(message, code="DUPLICATE_TRANSACTION", status_code=status.HTTP_400_BAD_REQUEST)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class InternalError(AppError):
    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, code="INTERNAL_ERROR", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _error_body(request: Request, message: str, code: str) -> dict:
    body = {"error": message, "code": code}
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return body


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    return ORJSONResponse(status_code=exc.status_code, content=_error_body(request, exc.message, exc.code))


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    """Routing-level errors (unknown path, wrong method) in the same body shape."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(request, NotFoundError())
    response = error_response(request, AppError(str(exc.detail), code="HTTP_ERROR", status_code=exc.status_code))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    from app.core.logging import get_logger
    get_logger(__name__).info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return error_response(request, ValidationError("Missing or invalid data"))


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from app.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    return error_response(request, InternalError())
