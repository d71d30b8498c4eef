"""Centralized error handling for the presentation layer."""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.exceptions import (
    DomainError,
    QuotationNotFoundError,
    RowNotFoundError,
    ValidationError,
    VersionNotFoundError,
)
from .problem_details import (
    ErrorCodes,
    NotFoundProblemDetail,
    ProblemDetail,
    ProblemDetailFactory,
    ValidationProblemDetail,
)

_NOT_FOUND_RESOURCES: dict[type[DomainError], str] = {
    QuotationNotFoundError: "quotation",
    VersionNotFoundError: "version",
    RowNotFoundError: "row",
}


def _problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


def handle_domain_error(error: DomainError, request: Request) -> JSONResponse:
    """Convert domain errors to RFC 7807 responses."""
    instance = str(request.url.path)
    problem: ProblemDetail | ValidationProblemDetail | NotFoundProblemDetail

    if isinstance(error, ValidationError):
        problem = ProblemDetailFactory.validation_failed(
            detail=str(error),
            instance=instance,
            field_errors=_extract_field_errors(error),
        )
    elif type(error) in _NOT_FOUND_RESOURCES:
        problem = ProblemDetailFactory.resource_not_found(
            resource_type=_NOT_FOUND_RESOURCES[type(error)],
            detail=str(error),
            instance=instance,
            resource_id=error.args[1] if len(error.args) > 1 else None,
        )
    else:
        problem = ProblemDetailFactory.internal_server_error(
            detail="An unexpected error occurred. Please try again.",
            instance=instance,
        )

    return _problem_response(problem)


def handle_request_validation_error(
    error: RequestValidationError, request: Request
) -> JSONResponse:
    """Convert Pydantic request errors to a validation problem."""
    field_errors = []
    for err in error.errors():
        field_name = ".".join(str(loc) for loc in err["loc"] if loc != "body")
        field_errors.append(
            {
                "field": field_name or "unknown",
                "code": err["type"],
                "message": err["msg"],
            }
        )

    problem = ProblemDetailFactory.validation_failed(
        detail="Request validation failed",
        instance=str(request.url.path),
        field_errors=field_errors,
    )
    return _problem_response(problem)


def handle_unexpected_error(detail: str, request: Request) -> JSONResponse:
    problem = ProblemDetailFactory.internal_server_error(
        detail=detail, instance=str(request.url.path)
    )
    return _problem_response(problem)


def _extract_field_errors(error: ValidationError) -> list[dict[str, Any]]:
    """Extract field-specific errors from a domain ValidationError."""
    errors = []
    error_msg = str(error).lower()

    if "name" in error_msg:
        if "longer" in error_msg:
            errors.append(
                {
                    "field": "name",
                    "code": ErrorCodes.FIELD_TOO_LONG,
                    "message": "Name is too long",
                }
            )
        elif "control characters" in error_msg:
            errors.append(
                {
                    "field": "name",
                    "code": ErrorCodes.FIELD_INVALID_FORMAT,
                    "message": "Name contains invalid characters",
                }
            )

    if "gst rate" in error_msg:
        errors.append(
            {
                "field": "gst_rate",
                "code": ErrorCodes.FIELD_INVALID_VALUE,
                "message": str(error),
            }
        )

    if "discount type" in error_msg:
        errors.append(
            {
                "field": "discount_type",
                "code": ErrorCodes.FIELD_INVALID_VALUE,
                "message": str(error),
            }
        )

    if "direction" in error_msg:
        errors.append(
            {
                "field": "direction",
                "code": ErrorCodes.FIELD_INVALID_VALUE,
                "message": str(error),
            }
        )

    return errors
