"""Error taxonomy shared by every lifeops module.

Collaborator failures (database, HTTP APIs) are wrapped in ``AdapterError``
with the operation name and the offending id so callers can log or retry
externally. Nothing in the core retries or recovers silently.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class LifeOpsError(Exception):
    """Base class for all lifeops errors."""


class ValidationError(LifeOpsError, ValueError):
    """Raised when an input record is malformed.

    Attributes:
        entity: Name of the record type being validated (e.g. ``"task"``).
        fields: Names of the offending fields, when known.
    """

    def __init__(self, entity: str, message: str, *, fields: list[str] | None = None) -> None:
        self.entity = entity
        self.fields = list(fields or [])
        self.message = message
        super().__init__(f"Invalid {entity}: {message}")

    @classmethod
    def from_pydantic(cls, entity: str, exc: PydanticValidationError) -> ValidationError:
        fields: list[str] = []
        parts: list[str] = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
            if location not in fields:
                fields.append(location)
            parts.append(f"{location}: {error.get('msg', 'invalid value')}")
        return cls(entity, "; ".join(parts), fields=fields)


class NotFoundError(LifeOpsError, LookupError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, record_id: Any) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class AdapterError(LifeOpsError):
    """Raised when a collaborator (database or remote API) call fails.

    Attributes:
        operation: Logical operation that failed (e.g. ``"event_store.update"``).
        target_id: Identifier of the record the operation targeted, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        target_id: Any = None,
    ) -> None:
        self.operation = operation
        self.target_id = target_id
        self.message = message
        context = []
        if operation:
            context.append(f"operation={operation}")
        if target_id is not None:
            context.append(f"id={target_id}")
        suffix = f" ({', '.join(context)})" if context else ""
        super().__init__(f"{message}{suffix}")


def validate_record(model: type[ModelT], data: Any, *, entity: str) -> ModelT:
    """Validate *data* against *model*, raising ``ValidationError`` on failure.

    Already-validated instances of *model* pass through unchanged.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(entity, exc) from exc
