"""Resolve the display title of a span from its API metadata.

Resolution never fails:

1. No API metadata: title is the name of the first API-error annotation the
   registry recognizes, or the generic API-METADATA-ERROR name.
2. Metadata of type 0: the descriptor is parsed into a short method
   description and a simple class name; if parsing fails the raw descriptor
   is used.
3. Metadata of any other type: the descriptor is already formatted by the
   instrumentation and is used verbatim.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from callstack.api_parser import ApiDescriptionParser
from callstack.registry import AnnotationKey, AnnotationKeyRegistry, AnnotationKeys
from callstack.trace.span_model import (
    DEFAULT_API_TYPE,
    UNKNOWN_LINE_NUMBER,
    Annotation,
    ApiMetaData,
    SpanAlign,
)

logger = logging.getLogger("callstack.api_resolver")


@dataclass(frozen=True)
class Api:
    """Resolved display information for one span."""

    title: str = ""
    simple_class_name: str = ""
    description: str = ""
    api_type: int = DEFAULT_API_TYPE


def find_annotation(annotations: Sequence[Annotation], key: int) -> Optional[Annotation]:
    """Return the first annotation with `key`."""
    for annotation in annotations:
        if annotation.key == key:
            return annotation
    return None


def format_api_info(api_meta_data: ApiMetaData) -> str:
    """Descriptor text with ``:line`` appended when the line is known."""
    if api_meta_data.line_number != UNKNOWN_LINE_NUMBER:
        return f"{api_meta_data.api_info}:{api_meta_data.line_number}"
    return api_meta_data.api_info


class ApiResolver:
    """Derives title, class name and description for spans."""

    def __init__(
        self,
        annotation_key_registry: AnnotationKeyRegistry,
        parser: Optional[ApiDescriptionParser] = None,
    ) -> None:
        self.annotation_key_registry = annotation_key_registry
        self.parser = parser or ApiDescriptionParser()

    def resolve(self, align: SpanAlign) -> Api:
        api_meta_data = self._find_api_meta_data(align)
        if api_meta_data is None:
            return Api(title=self.find_api_meta_data_error(align.annotations).name)

        raw = format_api_info(api_meta_data)
        if api_meta_data.type != DEFAULT_API_TYPE:
            return Api(title=raw, description=raw, api_type=api_meta_data.type)

        result = self.parser.try_parse(raw)
        if not result.ok:
            logger.warning("Failed to parse api description %r: %s", raw, result.error)
            return Api(title=raw, description=raw, api_type=api_meta_data.type)

        return Api(
            title=result.description.simple_method_description,
            simple_class_name=result.description.simple_class_name,
            description=raw,
            api_type=api_meta_data.type,
        )

    def find_api_meta_data_error(self, annotations: Sequence[Annotation]) -> AnnotationKey:
        """Most specific reason the API metadata is missing."""
        for annotation in annotations:
            error_key = self.annotation_key_registry.find_api_error_code(annotation.key)
            if error_key is not None:
                return error_key
        return AnnotationKeys.ERROR_API_METADATA_ERROR

    def _find_api_meta_data(self, align: SpanAlign) -> Optional[ApiMetaData]:
        annotation = find_annotation(align.annotations, AnnotationKeys.API_METADATA.code)
        if annotation is None:
            return None
        if not isinstance(annotation.value, ApiMetaData):
            logger.warning(
                "Ignoring api metadata of type %s on span %s of transaction %s",
                type(annotation.value).__name__,
                align.span_id,
                align.transaction_id,
            )
            return None
        return annotation.value
