from fastapi import Request
from fastapi.responses import JSONResponse
import structlog

from arena402.errors import ErrorKind, GatewayError, UpstreamError

logger = structlog.get_logger()

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UPSTREAM: 502,
    ErrorKind.PAYMENT: 402,
}


def status_for_error(error: GatewayError) -> int:
    # Upstream client errors (missing block, private channel) pass through
    if isinstance(error, UpstreamError) and error.status_code and 400 <= error.status_code < 500:
        return error.status_code
    return STATUS_BY_KIND[error.kind]


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    status_code = status_for_error(exc)
    log = logger.warning if status_code < 500 else logger.error
    log("request_failed", path=request.url.path, error=exc.code, status_code=status_code, details=exc.details)

    body = exc.to_dict()
    if isinstance(exc, UpstreamError) and exc.body:
        body["details"]["upstream"] = exc.body[:1000]
    return JSONResponse(status_code=status_code, content=body)
