"""Error taxonomy shared by the workflows and the HTTP layer.

Every error carries the status code it is reported with; the handlers
registered in ``app.main.create_app`` turn them into the error envelope.
"""

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class UploadError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
