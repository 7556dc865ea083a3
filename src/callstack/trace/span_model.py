from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from callstack.errors import CallTreeStateError

# Line number recorded when the agent could not determine one
UNKNOWN_LINE_NUMBER = -1

# api type of methods whose descriptor still needs parsing
DEFAULT_API_TYPE = 0


@dataclass(frozen=True)
class Annotation:
    """A typed key/value attached to a span."""

    key: int
    value: Any
    authorized: bool = True


@dataclass(frozen=True)
class ApiMetaData:
    """Which method or endpoint a span represents.

    Stored as the value of the API-metadata annotation.
    """

    api_info: str
    line_number: int = UNKNOWN_LINE_NUMBER
    type: int = DEFAULT_API_TYPE  # 0 = uninstrumented, descriptor is parsed


@dataclass
class SpanAlign:
    """One span (or span event) positioned in a call tree."""

    depth: int
    transaction_id: str
    span_id: int

    # Timing
    start_time: int = 0
    elapsed: int = 0
    gap: int = 0
    execution_milliseconds: int = 0

    # Identity
    agent_id: str = ""
    application_id: str = ""
    service_type: int = -1
    destination_id: str = ""

    has_child: bool = False
    is_span: bool = True  # False for span events nested under a span

    annotations: list[Annotation] = field(default_factory=list)

    # Error
    exception_class: Optional[str] = None
    exception_message: Optional[str] = None

    # Row id, written once by the record factory
    id: Optional[int] = None

    @property
    def has_exception(self) -> bool:
        return bool(self.exception_class or self.exception_message)

    def assign_id(self, record_id: int) -> None:
        """Set the row id. A span is rendered once, so a second call fails."""
        if self.id is not None:
            raise CallTreeStateError(
                f"span already has id {self.id}, refusing to assign {record_id}. "
                f"transaction_id={self.transaction_id} span_id={self.span_id}"
            )
        self.id = record_id
