"""Domain-specific exceptions."""


class DomainError(Exception):
    """Base exception for domain errors."""

    pass


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    pass


class QuotationNotFoundError(DomainError):
    """Raised when a saved quotation does not exist."""

    pass


class VersionNotFoundError(DomainError):
    """Raised when a requested version does not exist."""

    pass


class RowNotFoundError(DomainError):
    """Raised when a row id is not part of the document."""

    pass
