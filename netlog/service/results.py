"""Result objects returned across the service boundary."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class OperationResult(BaseModel):
    """``{success, error?}`` reply for a mutating boundary call."""
    success: bool
    error: Optional[str] = Field(default=None)
    message: Optional[str] = Field(default=None)
    id: Optional[int] = Field(default=None)

    @classmethod
    def ok(cls, **kwargs: Any) -> "OperationResult":
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, error: str, **kwargs: Any) -> "OperationResult":
        return cls(success=False, error=error, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


NOT_READY = "Database not ready."
CLEARED_NOT_PERSISTED = "Log cleared in memory but not saved to disk; entries may return after a restart."
