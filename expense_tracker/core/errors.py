from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger("expense_tracker.errors")

ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "internal_error",
}


class JsonPatchError(Exception):
    """A patch document could not be applied.

    ``index`` is the zero-based position of the failing operation, or None
    when the document as a whole is malformed.
    """

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.message = message
        self.index = index

    def __str__(self) -> str:
        if self.index is None:
            return self.message
        return f"operation {self.index}: {self.message}"


class InvalidSortError(ValueError):
    """Sort expression names a field that cannot be sorted on."""


def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore
    content = {
        "error": ERROR_CODES.get(exc.status_code, "http_error"),
        "detail": exc.detail,
    }
    # Internal failures never echo their detail back to the client
    if exc.status_code >= 500:
        content["detail"] = "An unexpected error occurred."
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": jsonable_errors(exc),
        },
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # pydantic may put exception instances in ``ctx``; keep only plain fields
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
