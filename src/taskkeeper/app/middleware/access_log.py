import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from taskkeeper.observability.outcomes import OutcomeResult
from taskkeeper.observability.tracer import OperationTracer

logger = logging.getLogger("taskkeeper.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, tracer: OperationTracer):
        super().__init__(app)
        self.tracer = tracer

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

        # routes pass this on as the correlation id
        request.state.request_id = request_id

        logger.info(
            "request.start",
            extra={
                "category": "http",
                "event": "request.start",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query": str(request.url.query),
                "client": request.client.host if request.client else None,
            },
        )

        op = self.tracer.start("http.request", f"{request.method} {request.url.path}", request_id)
        try:
            response: Response = await call_next(request)
        except Exception as e:
            op.fail(e)
            logger.exception(
                "request.error",
                extra={
                    "category": "http",
                    "event": "request.error",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                },
            )
            raise

        if response.status_code >= 500:
            result = OutcomeResult.error
        elif response.status_code >= 400:
            result = OutcomeResult.warning
        else:
            result = OutcomeResult.success
        op.stop(result, f"status={response.status_code}")
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request.end",
            extra={
                "category": "http",
                "event": "request.end",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
            },
        )
        return response
