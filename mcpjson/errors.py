"""Application errors carrying a kind and an exit code."""

from __future__ import annotations

from enum import IntEnum


class ErrorType(IntEnum):
    GENERAL = 0
    VALIDATION = 1
    FILE = 2
    NETWORK = 3
    CONFIG = 4


class AppError(Exception):
    """An error with a kind, a message, an optional cause and an exit code."""

    def __init__(
        self,
        message: str,
        *,
        error_type: ErrorType = ErrorType.GENERAL,
        cause: BaseException | None = None,
        code: int = 1,
    ) -> None:
        super().__init__(message)
        self.type = error_type
        self.message = message
        self.cause = cause
        self.code = code
        self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


def validation_error(message: str) -> AppError:
    return AppError(message, error_type=ErrorType.VALIDATION, code=7)


def file_error(message: str, cause: BaseException | None) -> AppError:
    return AppError(message, error_type=ErrorType.FILE, cause=cause, code=3)


def config_error(message: str, cause: BaseException | None) -> AppError:
    return AppError(message, error_type=ErrorType.CONFIG, cause=cause, code=5)


def general_error(message: str, cause: BaseException | None) -> AppError:
    return AppError(message, error_type=ErrorType.GENERAL, cause=cause, code=1)