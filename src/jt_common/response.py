"""Unified API response envelope.

{
    "code": 0,                 // 0=success, otherwise AppError.code
    "message": "success",
    "data": { ... },           // null on error
    "timestamp": "...",
    "request_id": "req_..."    // same id RequestLogMiddleware logs
}
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field

from src.jt_common.datetime_utils import utc_now
from src.jt_common.errors import AppError


def _new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    request_id: str = Field(default_factory=_new_request_id)


def success_response(data: Any = None, request_id: str | None = None) -> ApiResponse:
    resp = ApiResponse(data=data)
    if request_id:
        resp.request_id = request_id
    return resp


def error_response(exc: AppError, request_id: str | None = None) -> ApiResponse:
    resp = ApiResponse(code=exc.code, message=exc.message, data=None)
    if request_id:
        resp.request_id = request_id
    return resp
