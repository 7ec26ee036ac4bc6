import time
from typing import Callable, Optional
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from auth.auth_utils import AuthUtils
from utils.logging import focus_logger, log_request_start, log_request_end, log_error, log_periodic_stats


def _request_user_id(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    payload = AuthUtils.verify_token(auth_header[len("Bearer "):])
    return payload.get("sub") if payload else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests with timing"""

    def __init__(self, app, log_periodic_stats_interval: int = 300):  # 5 minutes
        super().__init__(app)
        self.log_periodic_stats_interval = log_periodic_stats_interval
        self.last_stats_log = time.time()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip logging for health checks and docs
        if request.url.path in ["/health", "/docs", "/redoc", "/openapi.json"]:
            return await call_next(request)

        user_id = _request_user_id(request)
        start_time = time.time()
        endpoint = f"{request.method} {request.url.path}"
        request_info = log_request_start(request, endpoint, user_id)

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            log_request_end(request_info, duration_ms, response.status_code)

            current_time = time.time()
            if current_time - self.last_stats_log > self.log_periodic_stats_interval:
                log_periodic_stats()
                self.last_stats_log = current_time

            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000

            log_error(e, endpoint, user_id, {
                "duration_ms": duration_ms,
                "request_path": str(request.url.path),
                "request_method": request.method
            })
            log_request_end(request_info, duration_ms, 500)

            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"}
            )


class PerformanceLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to flag slow requests and expose response times"""

    def __init__(self, app, slow_request_threshold_ms: float = 1000):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000

        if duration_ms > self.slow_request_threshold_ms:
            focus_logger.logger.warning(
                f"🐌 SLOW REQUEST | {request.method} {request.url.path} | "
                f"Duration: {duration_ms:.2f}ms | Threshold: {self.slow_request_threshold_ms}ms"
            )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        return response
