"""
Request middleware for the SkillForge Hiring API: error translation, request logging and timing
"""
import time
import traceback
import uuid
from datetime import datetime
from typing import Any

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import ValidationError

from skillforge.utils.exceptions import SkillForgeBaseException, map_to_http_exception
from skillforge.utils.logging_config import get_logger

logger = get_logger(__name__)

MAX_LOGGED_BODY = 1000


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Turns exceptions escaping a route into the API's JSON error envelope"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        context = {"request_id": request_id, "method": request.method, "path": request.url.path}

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        except SkillForgeBaseException as exc:
            http_exc = map_to_http_exception(exc)
            # Client mistakes are expected traffic; only server-side failures are errors
            log = logger.error if http_exc.status_code >= 500 else logger.warning
            log(
                f"{exc.__class__.__name__} in {request.method} {request.url.path}: {exc.message}",
                extra={**context, "error_code": exc.error_code, "details": exc.details}
            )
            return self._error_response(request_id, http_exc.status_code, http_exc.detail)

        except RequestValidationError as exc:
            logger.warning(
                f"Request validation failed for {request.method} {request.url.path}",
                extra={**context, "validation_errors": exc.errors()}
            )
            return self._error_response(request_id, 422, {
                "error": "Validation failed",
                "message": "Request data validation failed",
                "validation_errors": exc.errors()
            })

        except ValidationError as exc:
            # A stored document that no longer fits its model
            logger.error(
                f"Stored data failed validation in {request.method} {request.url.path}: {exc}",
                extra={**context, "validation_errors": exc.errors()}
            )
            return self._error_response(request_id, 500, {
                "error": "Data validation failed",
                "message": "Stored data could not be read"
            })

        except HTTPException as exc:
            logger.warning(f"HTTP {exc.status_code} in {request.method} {request.url.path}: {exc.detail}", extra=context)
            return self._error_response(request_id, exc.status_code, exc.detail)

        except Exception as exc:
            logger.error(
                f"Unhandled exception in {request.method} {request.url.path}: {exc}",
                extra={**context, "exception_type": exc.__class__.__name__, "traceback": traceback.format_exc()},
                exc_info=True
            )
            return self._error_response(request_id, 500, {
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later."
            })

    @staticmethod
    def _error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
        if not isinstance(detail, dict):
            detail = {"message": str(detail)}

        content = {
            "success": False,
            "timestamp": datetime.utcnow().isoformat(),
            "request_id": request_id,
            "status_code": status_code,
            **detail
        }
        return JSONResponse(status_code=status_code, content=content, headers={"X-Request-ID": request_id})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its outcome and duration"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = getattr(request.state, 'request_id', None) or request.headers.get("X-Request-ID", "unknown")

        body = None
        if request.method in ("POST", "PUT", "PATCH"):
            raw = await request.body()
            body = raw[:MAX_LOGGED_BODY].decode("utf-8", errors="ignore")

        logger.debug(
            f"Request: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "query_params": dict(request.query_params),
                "user_id": request.headers.get("X-User-Id"),
                "body": body,
                "client_ip": request.client.host if request.client else "unknown"
            }
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                f"Request failed: {request.method} {request.url.path} after {time.time() - start_time:.3f}s",
                extra={"request_id": request_id, "exception": str(exc)}
            )
            raise

        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} in {time.time() - start_time:.3f}s",
            extra={"request_id": request_id, "status_code": response.status_code}
        )
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Flags requests slower than the configured threshold"""

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        processing_time = time.time() - start_time

        if processing_time > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} took {processing_time:.3f}s",
                extra={
                    "processing_time": processing_time,
                    "threshold": self.slow_request_threshold,
                    "path": request.url.path
                }
            )

        response.headers["X-Processing-Time"] = f"{processing_time:.3f}"
        return response
