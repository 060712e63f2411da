from enum import StrEnum


class ErrorCode(StrEnum):
    """Machine-readable codes carried by every EyeDooError."""

    VALIDATION = "VALIDATION"
    INVALID_ORDERING = "INVALID_ORDERING"
    CONFLICT = "CONFLICT"
    INSUFFICIENT_BUFFER = "INSUFFICIENT_BUFFER"
    FINALIZED = "FINALIZED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    PERSISTENCE = "PERSISTENCE"


class EyeDooError(Exception):
    """Base exception for the timeline engine."""

    code: ErrorCode = ErrorCode.VALIDATION

    def to_dict(self) -> dict:
        return {"code": self.code.value, "detail": str(self)}


class TimelineValidationError(EyeDooError):
    """Raised when input does not match the timeline schema."""

    code = ErrorCode.VALIDATION

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc) -> "TimelineValidationError":
        """Build from a pydantic ValidationError, keeping the field-level breakdown."""
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        return cls(f"{len(errors)} validation error(s)", errors)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "errors": self.errors}


class TimingError(EyeDooError):
    """Raised when an event breaks ordering, overlap, or buffer rules."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        other_event_id: str | None = None,
        gap_minutes: float | None = None,
    ):
        self.code = code
        self.other_event_id = other_event_id
        self.gap_minutes = gap_minutes
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.other_event_id is not None:
            data["other_event_id"] = self.other_event_id
        if self.gap_minutes is not None:
            data["gap_minutes"] = self.gap_minutes
        return data


class FinalizationError(EyeDooError):
    """Raised when a mutation targets a finalized timeline."""

    code = ErrorCode.FINALIZED

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Timeline for project '{project_id}' is finalized")


class NotFoundError(EyeDooError):
    """Raised when a referenced timeline or event does not exist."""

    code = ErrorCode.NOT_FOUND


class TimelineNotFoundError(NotFoundError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"No timeline for project '{project_id}'")


class EventNotFoundError(NotFoundError):
    def __init__(self, project_id: str, event_id: str):
        self.project_id = project_id
        self.event_id = event_id
        super().__init__(f"Event '{event_id}' not found in timeline for project '{project_id}'")


class TimelineExistsError(EyeDooError):
    """Raised when initializing a project that already has a timeline."""

    code = ErrorCode.ALREADY_EXISTS

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Timeline already exists for project '{project_id}'")


class PersistenceError(EyeDooError):
    """Raised by persistence adapters; retryable is the adapter's classification."""

    code = ErrorCode.PERSISTENCE

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retryable": self.retryable}


class ConcurrentModificationError(PersistenceError):
    """Raised when the stored revision moved between load and save."""

    code = ErrorCode.CONCURRENT_MODIFICATION

    def __init__(self, project_id: str, expected: int, actual: int | None):
        self.project_id = project_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Timeline for project '{project_id}' changed concurrently "
            f"(expected revision {expected}, found {actual})",
            retryable=True,
        )
