# =============================================================================
# Domain Errors
# =============================================================================
#
# Services raise these; the API layer maps them to HTTP status codes in
# findocai.main. Keeping them framework-free lets the Celery workers and
# tests use the same services without importing FastAPI.
#
#   FinDocError
#   ├── NotFoundError        → 404 (missing, or owned by someone else)
#   └── InvalidArgumentError → 400 (malformed caller input)
# =============================================================================


class FinDocError(Exception):
    """Base class for FinDocAI domain errors."""


class NotFoundError(FinDocError):
    """
    The requested document or conversation does not exist for this user.

    Raised for resources owned by another user too, so callers can never
    probe for the existence of someone else's data.
    """


class InvalidArgumentError(FinDocError):
    pass
