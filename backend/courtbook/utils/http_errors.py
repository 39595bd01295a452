"""
HTTP translation for reservation errors.

Routes raise HTTPException with a detail dict, so every failure carries a
stable "kind" next to the human-readable "message". Malformed requests that
FastAPI rejects before a route runs get the same shape as INVALID_SLOT.
"""
from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from courtbook.services.reservation_errors import InvalidSlot, ReservationError


def to_http_exception(exc: ReservationError) -> HTTPException:
    headers = None
    if exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    elif exc.retryable:
        headers = {"Retry-After": "1"}
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail(), headers=headers)


def _describe_validation_error(error: dict) -> str:
    # loc starts with the request part ("body", "query", ...)
    field = ".".join(str(part) for part in error.get("loc", ())[1:]) or "request"
    return f"{field}: {error.get('msg', 'invalid value')}"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "; ".join(_describe_validation_error(e) for e in exc.errors()) or "Invalid request"
    error = InvalidSlot(message)
    return JSONResponse(status_code=error.status_code, content=jsonable_encoder({"detail": error.to_detail()}))
