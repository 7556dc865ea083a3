"""Build display rows for the nodes of a call tree.

A RecordFactory numbers the rows of one conversion run. It owns its id
sequence, so a fresh factory is needed for every call tree rendered and a
factory must not be shared between threads.
"""
from __future__ import annotations

from typing import Optional

from callstack.api_resolver import ApiResolver
from callstack.errors import CallTreeStateError
from callstack.naming import simple_exception_name
from callstack.records import (
    ROOT_PARENT_ID,
    AnnotationRecord,
    ExceptionRecord,
    ParameterRecord,
    SpanRecord,
)
from callstack.registry import AnnotationKeyRegistry, ServiceType, ServiceTypeRegistry
from callstack.trace.call_tree import CallTreeNode
from callstack.trace.span_model import SpanAlign

FILTERED_AGENT_ID = "UNKNOWN"


class IdSequence:
    """Row ids for one conversion run: 1, 2, 3, ..."""

    def __init__(self) -> None:
        self._next = ROOT_PARENT_ID + 1

    def next_id(self) -> int:
        value = self._next
        # 0 means "no parent" in parent_id
        assert value > ROOT_PARENT_ID, f"row id {value} collides with the root parent id"
        self._next += 1
        return value


class RecordFactory:
    """Creates span, exception, annotation and parameter rows."""

    def __init__(
        self,
        service_type_registry: ServiceTypeRegistry,
        annotation_key_registry: AnnotationKeyRegistry,
        api_resolver: Optional[ApiResolver] = None,
    ) -> None:
        self.service_type_registry = service_type_registry
        self.annotation_key_registry = annotation_key_registry
        self.api_resolver = api_resolver or ApiResolver(annotation_key_registry)
        self._ids = IdSequence()

    def build_span_record(self, node: CallTreeNode, argument: str) -> SpanRecord:
        align = node.value
        align.assign_id(self._ids.next_id())
        parent_id = self.get_parent_id(node)
        api = self.api_resolver.resolve(align)

        return SpanRecord(
            depth=align.depth,
            id=align.id,
            parent_id=parent_id,
            title=api.title,
            argument=argument,
            authorized=True,
            start_time=align.start_time,
            elapsed=align.elapsed,
            gap=align.gap,
            agent_id=align.agent_id,
            application_id=align.application_id,
            service_type=self.service_type_registry.find_service_type(align.service_type),
            destination_id=align.destination_id,
            has_child=align.has_child,
            transaction_id=align.transaction_id,
            span_id=align.span_id,
            execution_milliseconds=align.execution_milliseconds,
            api_type=api.api_type,
            simple_class_name=api.simple_class_name,
            full_api_description=api.description,
        )

    def build_filtered_span_record(self, node: CallTreeNode, title: str) -> SpanRecord:
        """Hidden row standing in for a span whose details are not shown."""
        align = node.value
        align.assign_id(self._ids.next_id())
        parent_id = self.get_parent_id(node)

        return SpanRecord(
            depth=align.depth,
            id=align.id,
            parent_id=parent_id,
            title=title,
            argument="",
            authorized=False,
            start_time=align.start_time,
            elapsed=align.elapsed,
            gap=align.gap,
            agent_id=FILTERED_AGENT_ID,
            application_id=align.application_id,
            service_type=ServiceType.UNKNOWN,
            destination_id="",
            has_child=False,
            transaction_id=align.transaction_id,
            span_id=align.span_id,
            execution_milliseconds=align.execution_milliseconds,
        )

    def build_exception_record(
        self, depth: int, parent_id: int, align: SpanAlign
    ) -> Optional[ExceptionRecord]:
        if not align.has_exception:
            return None

        return ExceptionRecord(
            depth=depth,
            id=self._ids.next_id(),
            parent_id=parent_id,
            title=simple_exception_name(align.exception_class),
            argument=align.exception_message or "",
            authorized=True,
            transaction_id=align.transaction_id,
            span_id=align.span_id,
            execution_milliseconds=align.execution_milliseconds,
        )

    def build_annotation_records(
        self, depth: int, parent_id: int, align: SpanAlign
    ) -> list[AnnotationRecord]:
        records: list[AnnotationRecord] = []
        for annotation in align.annotations:
            key = self.annotation_key_registry.find_annotation_key(annotation.key)
            if not key.view_in_record_set:
                continue
            records.append(
                AnnotationRecord(
                    depth=depth,
                    id=self._ids.next_id(),
                    parent_id=parent_id,
                    title=key.name,
                    argument=_annotation_text(annotation.value),
                    authorized=annotation.authorized,
                    annotation_key=annotation.key,
                )
            )
        return records

    def build_parameter_record(
        self, depth: int, parent_id: int, method: str, argument: str
    ) -> ParameterRecord:
        return ParameterRecord(
            depth=depth,
            id=self._ids.next_id(),
            parent_id=parent_id,
            title=method,
            argument=argument,
            authorized=True,
        )

    def get_parent_id(self, node: CallTreeNode) -> int:
        """Row id of the node's parent, or ROOT_PARENT_ID for the root span.

        Raises:
            CallTreeStateError: If a node without a parent is not a span, or
                the parent has not been given a row yet
        """
        parent = node.parent
        if parent is None:
            if not node.value.is_span:
                raise CallTreeStateError(f"parent is null. node={node!r}")
            return ROOT_PARENT_ID

        parent_id = parent.value.id
        if parent_id is None:
            raise CallTreeStateError(
                f"parent has no row yet; parents must be visited before children. node={node!r}"
            )
        return parent_id


def _annotation_text(value: object) -> str:
    if value is None:
        return ""
    return str(value)
