"""Display rows of a flattened call stack.

Every row shares depth, id, parent_id, title, argument and authorized; the
rest depends on the kind of row. `authorized=False` marks a row whose
content is hidden from the viewer.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, ClassVar

from callstack.registry import ServiceType

# parent_id of the root span row; never used as a row id
ROOT_PARENT_ID = 0


class RecordKind(str, Enum):
    """Kind of display row."""

    SPAN = "span"
    EXCEPTION = "exception"
    ANNOTATION = "annotation"
    PARAMETER = "parameter"


@dataclass(frozen=True)
class Record:
    """Fields common to every row."""

    depth: int
    id: int
    parent_id: int
    title: str
    argument: str
    authorized: bool

    kind: ClassVar[RecordKind]
    is_method: ClassVar[bool] = False
    is_exception: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        data = asdict(self)
        data["kind"] = self.kind.value
        data["is_method"] = self.is_method
        data["is_exception"] = self.is_exception
        return data


@dataclass(frozen=True)
class SpanRecord(Record):
    """Row for one span or span event."""

    start_time: int
    elapsed: int
    gap: int
    agent_id: str
    application_id: str
    service_type: ServiceType
    destination_id: str
    has_child: bool
    transaction_id: str
    span_id: int
    execution_milliseconds: int
    api_type: int = 0
    simple_class_name: str = ""
    full_api_description: str = ""

    kind = RecordKind.SPAN
    is_method = True

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["service_type"] = self.service_type.name
        return data


@dataclass(frozen=True)
class ExceptionRecord(Record):
    """Row for the exception a span ended with."""

    transaction_id: str
    span_id: int
    execution_milliseconds: int

    kind = RecordKind.EXCEPTION
    is_exception = True


@dataclass(frozen=True)
class AnnotationRecord(Record):
    """Row for an annotation the registry marks visible."""

    annotation_key: int

    kind = RecordKind.ANNOTATION


@dataclass(frozen=True)
class ParameterRecord(Record):
    """Row built from a caller-supplied method/argument pair."""

    kind = RecordKind.PARAMETER

