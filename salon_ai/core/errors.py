"""
Error taxonomy shared by the closure and conversation layers.

ValidationError and NotFoundError propagate to callers (400/404 class).
CollaboratorError wraps failures of injected capabilities (LLM,
notification, appointment lookup). ParseError never leaves the
conversation layer.
"""


class SalonAIError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str, *, code: str = "error"):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {"error": self.code, "message": self.message}


class ValidationError(SalonAIError):
    """Caller supplied malformed or forbidden input."""

    def __init__(self, message: str, *, code: str = "validation_error"):
        super().__init__(message, code=code)


class NotFoundError(SalonAIError):
    """Entity does not exist for this tenant.

    Also raised for entities owned by another tenant so existence is
    never leaked across tenants.
    """

    def __init__(self, message: str, *, code: str = "not_found"):
        super().__init__(message, code=code)


class ConflictError(SalonAIError):
    """Storage rejected a write because of a uniqueness/exclusion constraint."""

    def __init__(self, message: str, *, code: str = "conflict"):
        super().__init__(message, code=code)


class CollaboratorError(SalonAIError):
    """An injected external capability failed."""

    def __init__(self, message: str, *, code: str = "collaborator_failure"):
        super().__init__(message, code=code)


class ParseError(SalonAIError):
    """Free text (LLM output, extracted slots) could not be interpreted."""

    def __init__(self, message: str, *, code: str = "parse_error"):
        super().__init__(message, code=code)
