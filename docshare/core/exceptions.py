"""
Domain exceptions. The API layer maps these to HTTP responses.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class DocumentValidationError(ValueError):
    """A document submission failed one or more field-scoped checks."""

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))


class DocumentProcessingError(ValueError):
    """A blocking pre-commit gate rejected the document. Message is user-facing."""


class NotionPageNotFound(LookupError):
    pass


class BlocklistUnavailable(RuntimeError):
    pass


class JobDispatchError(RuntimeError):
    """The conversion queue refused or failed to accept a task."""

    def __init__(self, task_kind: str, message: str, status_code: int = 0):
        self.task_kind = task_kind
        self.status_code = status_code
        super().__init__(f"{task_kind}: {message}")


class TeamAccessDenied(PermissionError):
    """The authenticated user is not a member of the requested team."""
