# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Conversation engine error taxonomy (raised internally, surfaced as results)
from typing import Any, ClassVar, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class AppError(Exception):
    """
    引擎内部统一异常：
    - code 为稳定字符串，调用方按 code 分支
    - 对外接口不抛出，转换为 ErrorResponse 放进结果里
    """

    default_code: ClassVar[str] = "APP_ERROR"
    default_message: ClassVar[str] = "Application error"

    def __init__(
            self,
            message: Optional[str] = None,
            details: Any | None = None,
            *,
            code: Optional[str] = None,
    ) -> None:
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(code=self.code, message=self.message, details=self.details)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotFoundError(AppError):
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class PermissionDeniedError(AppError):
    default_code = "PERMISSION_DENIED"
    default_message = "Permission denied"


class ValidationAppError(AppError):
    default_code = "VALIDATION_ERROR"
    default_message = "Validation error"


# blob store I/O; caught by the persistence adapter, never reaches engine callers
class PersistenceError(AppError):
    default_code = "PERSISTENCE_ERROR"
    default_message = "Persistence failed"


# no event loop to hang delivery timers / background saves on
class SchedulerUnavailableError(AppError):
    default_code = "SCHEDULER_UNAVAILABLE"
    default_message = "No running event loop for lifecycle timers"
