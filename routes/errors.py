from fastapi import HTTPException, status
from services.errors import (
    ServiceError, AlreadyExistsError, NotFoundError, ConflictError, InvalidInputError
)
import logging


logger = logging.getLogger(__name__)

# TEAM_EXISTS is a 400 in the public API, every other duplicate is a 409
STATUS_BY_CODE = {
    "TEAM_EXISTS": status.HTTP_400_BAD_REQUEST,
}

STATUS_BY_KIND = (
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
)


def error_detail(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def to_http_exception(error: ServiceError) -> HTTPException:
    status_code = STATUS_BY_CODE.get(error.code)
    if status_code is None:
        status_code = next(
            (code for kind, code in STATUS_BY_KIND if isinstance(error, kind)),
            status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return HTTPException(status_code=status_code, detail=error_detail(error.code, error.message))


def internal_error(error: Exception) -> HTTPException:
    logger.exception("unhandled error: %s", error)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=error_detail("INTERNAL", "internal server error")
    )
