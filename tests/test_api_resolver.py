"""Tests for span title resolution."""
from __future__ import annotations

import logging

import pytest

from callstack.api_resolver import Api, ApiResolver, find_annotation, format_api_info
from callstack.registry import AnnotationKey, AnnotationKeyRegistry, AnnotationKeys
from callstack.trace.span_model import Annotation, ApiMetaData, SpanAlign


def make_align(*annotations: Annotation) -> SpanAlign:
    """Helper to create a span carrying the given annotations."""
    return SpanAlign(
        depth=0,
        transaction_id="agent-1^1^1",
        span_id=10,
        annotations=list(annotations),
    )


def api_annotation(api_info: str, line_number: int = -1, type: int = 0) -> Annotation:
    return Annotation(
        key=AnnotationKeys.API_METADATA.code,
        value=ApiMetaData(api_info=api_info, line_number=line_number, type=type),
    )


@pytest.fixture
def resolver(annotation_keys: AnnotationKeyRegistry) -> ApiResolver:
    return ApiResolver(annotation_keys)


class TestFormatApiInfo:
    """Tests for the raw descriptor text."""

    def test_appends_known_line(self) -> None:
        assert format_api_info(ApiMetaData("com.a.B.c()", line_number=12)) == "com.a.B.c():12"

    def test_unknown_line_not_appended(self) -> None:
        assert format_api_info(ApiMetaData("com.a.B.c()")) == "com.a.B.c()"

    def test_line_zero_is_appended(self) -> None:
        assert format_api_info(ApiMetaData("com.a.B.c()", line_number=0)) == "com.a.B.c():0"


class TestResolveWithMetadata:
    """Tests for spans that carry API metadata."""

    def test_default_type_parses_descriptor(self, resolver: ApiResolver) -> None:
        align = make_align(api_annotation("com.example.shop.OrderService.place(java.lang.String id)"))

        api = resolver.resolve(align)

        assert api.title == "place(String id)"
        assert api.simple_class_name == "OrderService"
        assert api.description == "com.example.shop.OrderService.place(java.lang.String id)"
        assert api.api_type == 0

    def test_default_type_keeps_line_number(self, resolver: ApiResolver) -> None:
        align = make_align(api_annotation("com.example.Foo.bar()", line_number=77))

        api = resolver.resolve(align)

        assert api.title == "bar():77"
        assert api.description == "com.example.Foo.bar():77"

    def test_malformed_descriptor_falls_back_to_raw(
        self, resolver: ApiResolver, caplog: pytest.LogCaptureFixture
    ) -> None:
        align = make_align(api_annotation("broken descriptor", line_number=5))

        with caplog.at_level(logging.WARNING, logger="callstack.api_resolver"):
            api = resolver.resolve(align)

        assert api.title == "broken descriptor:5"
        assert api.description == "broken descriptor:5"
        assert api.simple_class_name == ""
        assert api.api_type == 0
        assert "Failed to parse api description" in caplog.text

    def test_malformed_descriptor_without_line(self, resolver: ApiResolver) -> None:
        api = resolver.resolve(make_align(api_annotation("broken descriptor")))

        assert api.title == "broken descriptor"

    @pytest.mark.parametrize("api_info", ["com.example.Foo.bar():--5", "com.example.Foo.bar():²"])
    def test_unparseable_line_suffix_falls_back_to_raw(
        self, resolver: ApiResolver, api_info: str
    ) -> None:
        api = resolver.resolve(make_align(api_annotation(api_info)))

        assert api.title == api_info
        assert api.description == api_info
        assert api.simple_class_name == ""

    def test_non_default_type_used_verbatim(self, resolver: ApiResolver) -> None:
        align = make_align(api_annotation("GET /orders/{id}", line_number=-1, type=100))

        api = resolver.resolve(align)

        assert api == Api(
            title="GET /orders/{id}",
            simple_class_name="",
            description="GET /orders/{id}",
            api_type=100,
        )

    def test_non_default_type_is_not_parsed(self, resolver: ApiResolver) -> None:
        descriptor = "com.example.Foo.bar(int a)"
        api = resolver.resolve(make_align(api_annotation(descriptor, line_number=3, type=7)))

        assert api.title == "com.example.Foo.bar(int a):3"
        assert api.simple_class_name == ""

    def test_first_metadata_wins(self, resolver: ApiResolver) -> None:
        align = make_align(
            api_annotation("com.example.First.one()"),
            api_annotation("com.example.Second.two()"),
        )

        assert resolver.resolve(align).simple_class_name == "First"


class TestResolveWithoutMetadata:
    """Tests for spans missing API metadata."""

    def test_known_error_code_names_title(self, resolver: ApiResolver) -> None:
        align = make_align(
            Annotation(key=AnnotationKeys.HTTP_URL.code, value="/x"),
            Annotation(key=AnnotationKeys.ERROR_API_METADATA_NOT_FOUND.code, value=None),
        )

        api = resolver.resolve(align)

        assert api.title == "API-METADATA-NOT-FOUND"
        assert api.api_type == 0
        assert api.description == ""

    def test_first_error_code_wins(self, resolver: ApiResolver) -> None:
        align = make_align(
            Annotation(key=AnnotationKeys.ERROR_API_METADATA_DID_COLLSION.code, value=None),
            Annotation(key=AnnotationKeys.ERROR_API_METADATA_NOT_FOUND.code, value=None),
        )

        assert resolver.resolve(align).title == "API-METADATA-DID-COLLSION"

    def test_no_error_code_uses_generic_title(self, resolver: ApiResolver) -> None:
        align = make_align(Annotation(key=AnnotationKeys.SQL.code, value="SELECT 1"))

        assert resolver.resolve(align).title == "API-METADATA-ERROR"

    def test_no_annotations_uses_generic_title(self, resolver: ApiResolver) -> None:
        assert resolver.resolve(make_align()).title == "API-METADATA-ERROR"

    def test_registry_defined_error_code(self) -> None:
        registry = AnnotationKeyRegistry.default()
        registry.register(AnnotationKey(10000099, "API-METADATA-PLUGIN-MISSING", error_api_metadata=True))
        resolver = ApiResolver(registry)

        api = resolver.resolve(make_align(Annotation(key=10000099, value=None)))

        assert api.title == "API-METADATA-PLUGIN-MISSING"

    def test_metadata_with_wrong_value_type_treated_as_missing(
        self, resolver: ApiResolver, caplog: pytest.LogCaptureFixture
    ) -> None:
        align = make_align(Annotation(key=AnnotationKeys.API_METADATA.code, value="raw string"))

        with caplog.at_level(logging.WARNING, logger="callstack.api_resolver"):
            api = resolver.resolve(align)

        assert api.title == "API-METADATA-ERROR"
        assert "Ignoring api metadata" in caplog.text


class TestFindAnnotation:
    """Tests for find_annotation."""

    def test_returns_first_match(self) -> None:
        first = Annotation(key=40, value="a")
        annotations = [Annotation(key=21, value="q"), first, Annotation(key=40, value="b")]

        assert find_annotation(annotations, 40) is first

    def test_returns_none_without_match(self) -> None:
        assert find_annotation([Annotation(key=21, value="q")], 40) is None
