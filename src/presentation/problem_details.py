"""RFC 7807 Problem Details for HTTP APIs."""

from typing import Any, Final

from pydantic import BaseModel, Field

PROBLEM_TYPE_BASE: Final = "https://quotations.example/problems"


class ErrorCodes:
    """Machine-readable error codes used in problem ``errors`` entries."""

    VALIDATION_FAILED: Final = "validation_failed"
    FIELD_REQUIRED: Final = "field_required"
    FIELD_TOO_LONG: Final = "field_too_long"
    FIELD_INVALID_FORMAT: Final = "field_invalid_format"
    FIELD_INVALID_VALUE: Final = "field_invalid_value"
    RESOURCE_NOT_FOUND: Final = "resource_not_found"
    INTERNAL_ERROR: Final = "internal_error"


class ProblemDetail(BaseModel):
    """Problem Details object as defined by RFC 7807."""

    type: str = Field(description="URI reference identifying the problem type")
    title: str = Field(description="Short, human-readable summary")
    status: int = Field(description="HTTP status code")
    detail: str | None = Field(None, description="Explanation of this occurrence")
    instance: str | None = Field(None, description="Request path that failed")


class ValidationProblemDetail(ProblemDetail):
    """Problem detail carrying per-field validation errors."""

    errors: list[dict[str, Any]] | None = Field(
        None, description="Field errors with field, code and message"
    )


class NotFoundProblemDetail(ProblemDetail):
    resource_type: str | None = Field(None, description="Kind of missing resource")
    resource_id: str | None = Field(None, description="Identifier that was looked up")


class ProblemDetailFactory:
    """Builds the problem details returned by the API."""

    @staticmethod
    def _type(slug: str) -> str:
        return f"{PROBLEM_TYPE_BASE}/{slug}"

    @classmethod
    def validation_failed(
        cls,
        detail: str,
        instance: str | None = None,
        field_errors: list[dict[str, Any]] | None = None,
    ) -> ValidationProblemDetail:
        return ValidationProblemDetail(
            type=cls._type("validation-failed"),
            title="Validation Failed",
            status=400,
            detail=detail,
            instance=instance,
            errors=field_errors or [],
        )

    @classmethod
    def resource_not_found(
        cls,
        resource_type: str,
        detail: str,
        instance: str | None = None,
        resource_id: str | None = None,
    ) -> NotFoundProblemDetail:
        return NotFoundProblemDetail(
            type=cls._type("resource-not-found"),
            title="Resource Not Found",
            status=404,
            detail=detail,
            instance=instance,
            resource_type=resource_type,
            resource_id=resource_id,
        )

    @classmethod
    def internal_server_error(
        cls, detail: str, instance: str | None = None
    ) -> ProblemDetail:
        return ProblemDetail(
            type=cls._type("internal-error"),
            title="Internal Server Error",
            status=500,
            detail=detail,
            instance=instance,
        )
