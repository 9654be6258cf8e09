"""
apiscaffold/schemas/response.py
Standard JSON response envelope

    {
      "success": true,
      "data": {"user": {"id": 1, "name": "John"}},
      "error": null,
      "meta": {"page": 1, "page_size": 10, "total_pages": 5, "total_count": 42}
    }

Members that are not set are left out of the body.
"""

from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from pydantic import Field

from .base import BaseModel


class ErrorInfo(BaseModel):
    """Machine-readable error code plus a message for humans"""
    code: str
    message: str
    details: Optional[Any] = None


class MetaInfo(BaseModel):
    """Pagination metadata"""
    page: Optional[int] = Field(None, ge=1)
    page_size: Optional[int] = Field(None, ge=1)
    total_pages: Optional[int] = Field(None, ge=0)
    total_count: Optional[int] = Field(None, ge=0)


class ResponseEnvelope(BaseModel):
    success: bool = True
    data: Optional[Any] = None
    error: Optional[ErrorInfo] = None
    meta: Optional[MetaInfo] = None

    def with_data(self, data: Any) -> "ResponseEnvelope":
        self.data = data
        return self

    def with_error(self, code: str, message: str, details: Any = None) -> "ResponseEnvelope":
        self.success = False
        self.error = ErrorInfo(code=code, message=message, details=jsonable_encoder(details))
        return self

    def with_meta(self, page: int, page_size: int, total_pages: int, total_count: int) -> "ResponseEnvelope":
        self.meta = MetaInfo(
            page=page, page_size=page_size, total_pages=total_pages, total_count=total_count
        )
        return self

    def send(self, status_code: int = status.HTTP_200_OK) -> JSONResponse:
        content = {"success": self.success}
        if self.data is not None:
            content["data"] = jsonable_encoder(self.data)
        if self.error is not None:
            content["error"] = self.error.model_dump(exclude_none=True, mode="json")
        if self.meta is not None:
            content["meta"] = self.meta.model_dump(exclude_none=True)
        return JSONResponse(status_code=status_code, content=content)


# ============================================================================
# Helpers
# ============================================================================

def success(data: Any = None) -> JSONResponse:
    return ResponseEnvelope().with_data(data).send()


def success_with_meta(data: Any, page: int, page_size: int, total_pages: int, total_count: int) -> JSONResponse:
    return (
        ResponseEnvelope()
        .with_data(data)
        .with_meta(page, page_size, total_pages, total_count)
        .send()
    )


def success_only() -> JSONResponse:
    return ResponseEnvelope().send()


def created(data: Any) -> JSONResponse:
    return ResponseEnvelope().with_data(data).send(status.HTTP_201_CREATED)


def no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def error(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    return ResponseEnvelope().with_error(code, message, details).send(status_code)


def bad_request(code: str, message: str, details: Any = None) -> JSONResponse:
    return error(status.HTTP_400_BAD_REQUEST, code, message, details)


def not_found(code: str, message: str, details: Any = None) -> JSONResponse:
    return error(status.HTTP_404_NOT_FOUND, code, message, details)


def unauthorized(message: str) -> JSONResponse:
    return error(status.HTTP_401_UNAUTHORIZED, "unauthorized", message)


def forbidden(message: str) -> JSONResponse:
    return error(status.HTTP_403_FORBIDDEN, "forbidden", message)


def internal_server_error() -> JSONResponse:
    return error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "An internal server error occurred",
    )


__all__ = [
    "ErrorInfo",
    "MetaInfo",
    "ResponseEnvelope",
    "success",
    "success_with_meta",
    "success_only",
    "created",
    "no_content",
    "error",
    "bad_request",
    "not_found",
    "unauthorized",
    "forbidden",
    "internal_server_error",
]
