import traceback
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError, DatabaseError
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from shadowchat.core.config import settings
from shadowchat.core.errors import (
    BaseCustomException,
    ValidationError,
    create_error_response,
    create_validation_error_response
)
from shadowchat.core.logging import get_logger

logger = get_logger(__name__)


def _json(error_response) -> JSONResponse:
    return JSONResponse(
        status_code=error_response.status_code,
        content=error_response.model_dump(mode="json")
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    통합 에러 처리 미들웨어

    라우터 밖으로 새어 나온 예외를 표준화된 에러 응답으로 변환합니다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseCustomException as e:
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        except PydanticValidationError as e:
            validation_errors = [
                ValidationError(
                    field=".".join(str(loc) for loc in error["loc"]),
                    message=error["msg"],
                    value=error.get("input")
                )
                for error in e.errors()
            ]

            error_response = create_validation_error_response(
                "Request validation failed",
                validation_errors
            )

            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content=error_response.model_dump(mode="json")
            )

        except IntegrityError as e:
            error_detail = str(e.orig) if getattr(e, "orig", None) else str(e)

            if "unique" in error_detail.lower() or "duplicate" in error_detail.lower():
                error_response = create_error_response(
                    "duplicate_entry",
                    "Duplicate entry detected",
                    status.HTTP_409_CONFLICT,
                    {"constraint": "unique"}
                )
            else:
                error_response = create_error_response(
                    "database_constraint",
                    "Database constraint violation",
                    status.HTTP_400_BAD_REQUEST,
                    {"detail": error_detail if settings.debug else None}
                )

            return _json(error_response)

        except (OperationalError, DatabaseError) as e:
            logger.error(f"Database error: {type(e).__name__}: {e}")

            return _json(create_error_response(
                "database_error",
                "Database connection or operation failed",
                status.HTTP_503_SERVICE_UNAVAILABLE,
                {"detail": str(e) if settings.debug else None}
            ))

        except RedisConnectionError as e:
            logger.error(f"Redis connection error: {e}")

            return _json(create_error_response(
                "redis_connection_error",
                "Realtime feed connection failed",
                status.HTTP_503_SERVICE_UNAVAILABLE,
                {"detail": str(e) if settings.debug else None}
            ))

        except RedisError as e:
            logger.error(f"Redis operation error: {e}")

            return _json(create_error_response(
                "redis_operation_error",
                "Realtime feed operation failed",
                status.HTTP_502_BAD_GATEWAY,
                {"detail": str(e) if settings.debug else None}
            ))

        except ValueError as e:
            return _json(create_error_response(
                "value_error",
                str(e),
                status.HTTP_400_BAD_REQUEST
            ))

        except PermissionError as e:
            return _json(create_error_response(
                "permission_error",
                "Permission denied",
                status.HTTP_403_FORBIDDEN,
                {"detail": str(e)}
            ))

        except FileNotFoundError as e:
            return _json(create_error_response(
                "file_not_found",
                "Required file not found",
                status.HTTP_404_NOT_FOUND,
                {"detail": str(e)}
            ))

        except TimeoutError as e:
            return _json(create_error_response(
                "timeout_error",
                "Request timeout",
                status.HTTP_408_REQUEST_TIMEOUT,
                {"detail": str(e) if settings.debug else None}
            ))

        except Exception as e:
            error_detail = None
            if settings.debug:
                error_detail = {
                    "exception": str(e),
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            logger.error(f"Unhandled exception: {type(e).__name__}: {e}", exc_info=True)

            return _json(create_error_response(
                "internal_server_error",
                "An unexpected error occurred",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                error_detail
            ))


def create_http_exception_handler():
    """FastAPI HTTPException 핸들러 생성"""
    async def http_exception_handler(request: Request, exc):
        """HTTPException을 표준 형식으로 변환"""

        if isinstance(exc, BaseCustomException):
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_dict()
            )

        error_response = create_error_response(
            "http_error",
            exc.detail if isinstance(exc.detail, str) else "HTTP error occurred",
            exc.status_code,
            {"detail": exc.detail} if not isinstance(exc.detail, str) else None
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json")
        )

    return http_exception_handler
