"""Error handling middleware.

Every error leaves the API in the same envelope::

    {"code": "...", "message": "...", "details": {...}}

Codes are stable; messages are localized (pt-BR) here, at the edge.
"""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quiro_agenda.core.exceptions import AppException, ConflictException

logger = structlog.get_logger()

MESSAGES_PT_BR = {
    "INVALID_REQUEST": "Requisição inválida",
    "NO_SCHEDULING_ACCESS": (
        "Acesso à agenda não autorizado. Você não possui acesso ativo à agenda."
    ),
    "NOT_FOUND": "Registro não encontrado",
    "ILLEGAL_TRANSITION": "Operação não permitida para o status atual da consulta",
    "TRANSIENT": "Serviço temporariamente indisponível. Tente novamente em instantes",
    "INTERNAL": "Ocorreu um erro inesperado",
    "UNAUTHORIZED": "Não autorizado",
    "HTTP_ERROR": "Erro na requisição",
}

HTTP_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "UNAUTHORIZED",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
}


def localize_conflict(conflicts: list[dict[str, str]]) -> str:
    """Build the pt-BR message for a scheduling conflict."""
    if len(conflicts) == 1:
        conflict = conflicts[0]
        year, month, day = conflict["date"].split("-")
        return (
            f"O horário {conflict['time']} do dia {day}/{month}/{year} "
            f"já está agendado para {conflict['patient_name']}."
        )
    return (
        f"{len(conflicts)} horário(s) já está(ão) ocupado(s). "
        "Por favor, entre em contato com os clientes para reagendar."
    )


def localize(exc: AppException) -> str:
    """Localized user-facing message for an application exception."""
    if isinstance(exc, ConflictException) and exc.conflicts:
        return localize_conflict(exc.conflicts)
    return MESSAGES_PT_BR.get(exc.code, exc.message)


def error_envelope(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    """Build the error body."""
    body: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.code, error=exc.message, path=request.url.path)
    else:
        logger.info("request_rejected", code=exc.code, error=exc.message, path=request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_envelope(exc.code, localize(exc), exc.details)),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handle HTTP exceptions.

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSON error response
    """
    code = HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(code, MESSAGES_PT_BR[code], {"detail": exc.detail}),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with validation details
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder(
            error_envelope(
                "INVALID_REQUEST",
                MESSAGES_PT_BR["INVALID_REQUEST"],
                {"errors": exc.errors()},
            )
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope("INTERNAL", MESSAGES_PT_BR["INTERNAL"]),
    )
