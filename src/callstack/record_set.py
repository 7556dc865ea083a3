"""Flatten a call tree into the ordered rows of a call stack view."""
from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional, Sequence

from callstack.api_resolver import find_annotation
from callstack.record_factory import RecordFactory
from callstack.records import Record
from callstack.registry import AnnotationKeyRegistry, ServiceTypeRegistry
from callstack.trace.call_tree import CallTree
from callstack.trace.span_model import SpanAlign

logger = logging.getLogger("callstack.record_set")

DEFAULT_FILTERED_TITLE = "..."

# Caller-supplied (method, argument) rows keyed by call tree node index
Parameters = Mapping[int, Sequence[tuple[str, str]]]


class RecordSetBuilder:
    """Walks a call tree depth-first and asks a RecordFactory for each row.

    Per node the order is: span row, exception row, annotation rows,
    parameter rows. Rows attached to a span sit one level deeper than it and
    point at it as their parent. Nodes matched by `is_filtered` produce one
    hidden span row and nothing else.
    """

    def __init__(
        self,
        factory: RecordFactory,
        *,
        is_filtered: Optional[Callable[[SpanAlign], bool]] = None,
        filtered_title: str = DEFAULT_FILTERED_TITLE,
    ) -> None:
        self.factory = factory
        self.is_filtered = is_filtered
        self.filtered_title = filtered_title

    def build(self, tree: CallTree, parameters: Optional[Parameters] = None) -> list[Record]:
        parameters = parameters or {}
        records: list[Record] = []

        for node in tree.iter_depth_first():
            align = node.value
            if self.is_filtered is not None and self.is_filtered(align):
                records.append(self.factory.build_filtered_span_record(node, self.filtered_title))
                continue

            span_record = self.factory.build_span_record(node, self.display_argument(align))
            records.append(span_record)

            depth = align.depth + 1
            exception_record = self.factory.build_exception_record(depth, span_record.id, align)
            if exception_record is not None:
                records.append(exception_record)
            records.extend(self.factory.build_annotation_records(depth, span_record.id, align))
            for method, argument in parameters.get(node.index, ()):
                records.append(
                    self.factory.build_parameter_record(depth, span_record.id, method, argument)
                )

        logger.debug("Built %d records from %d call tree nodes", len(records), len(tree))
        return records

    def display_argument(self, align: SpanAlign) -> str:
        """Value of the annotation the span's service type shows as its argument."""
        service_type = self.factory.service_type_registry.find_service_type(align.service_type)
        if service_type.argument_key is None:
            return ""
        annotation = find_annotation(align.annotations, service_type.argument_key)
        if annotation is None or annotation.value is None:
            return ""
        return str(annotation.value)


def build_record_set(
    tree: CallTree,
    service_type_registry: ServiceTypeRegistry,
    annotation_key_registry: AnnotationKeyRegistry,
    *,
    parameters: Optional[Parameters] = None,
    is_filtered: Optional[Callable[[SpanAlign], bool]] = None,
    filtered_title: str = DEFAULT_FILTERED_TITLE,
) -> list[Record]:
    """Convert `tree` into rows using a factory created for this run only."""
    factory = RecordFactory(service_type_registry, annotation_key_registry)
    builder = RecordSetBuilder(factory, is_filtered=is_filtered, filtered_title=filtered_title)
    return builder.build(tree, parameters)
