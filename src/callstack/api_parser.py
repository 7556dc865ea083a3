"""Parse API descriptor strings recorded by agents.

A descriptor looks like::

    com.example.service.OrderService.place(java.lang.String orderId, int qty):42

i.e. a fully qualified class, a method name, a parenthesised parameter list
and an optional ``:line`` suffix.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from callstack.errors import ApiDescriptionParseError
from callstack.trace.span_model import UNKNOWN_LINE_NUMBER

LINE_NUMBER_PATTERN = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class ApiDescription:
    """Structured form of a descriptor string."""

    class_name: str
    method_name: str
    parameters: tuple[str, ...] = ()
    line_number: int = UNKNOWN_LINE_NUMBER

    @property
    def simple_class_name(self) -> str:
        return self.class_name.rpartition(".")[2]

    @property
    def simple_parameters(self) -> tuple[str, ...]:
        return tuple(_simplify_parameter(p) for p in self.parameters)

    @property
    def simple_method_description(self) -> str:
        """``method(SimpleType name, ...)``, plus ``:line`` when known."""
        description = f"{self.method_name}({', '.join(self.simple_parameters)})"
        if self.line_number != UNKNOWN_LINE_NUMBER:
            description += f":{self.line_number}"
        return description


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one descriptor: either a description or an error."""

    source: str
    description: Optional[ApiDescription] = None
    error: Optional[str] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.description is not None


def _simplify_parameter(parameter: str) -> str:
    """Drop the package from a parameter's type, keeping any variable name."""
    type_name, sep, variable = parameter.partition(" ")
    simple_type = type_name.rpartition(".")[2]
    return f"{simple_type}{sep}{variable.strip()}" if sep else simple_type


def _split_parameters(parameter_text: str) -> tuple[str, ...]:
    parameter_text = parameter_text.strip()
    if not parameter_text:
        return ()
    parameters = tuple(" ".join(p.split()) for p in parameter_text.split(","))
    if any(not p for p in parameters):
        raise ApiDescriptionParseError(f"empty parameter in '({parameter_text})'")
    return parameters


def _parse_line_number(suffix: str, source: str) -> int:
    suffix = suffix.strip()
    if not suffix:
        return UNKNOWN_LINE_NUMBER
    if not suffix.startswith(":"):
        raise ApiDescriptionParseError(f"unexpected text after ')': {source}")
    number = suffix[1:].strip()
    if not LINE_NUMBER_PATTERN.fullmatch(number):
        raise ApiDescriptionParseError(f"invalid line number '{number}': {source}")
    return int(number)


class ApiDescriptionParser:
    """Parser for ``pkg.Class.method(params)[:line]`` descriptors."""

    def parse(self, api_description: str) -> ApiDescription:
        """Parse a descriptor.

        Raises:
            ApiDescriptionParseError: If the string does not follow the grammar
        """
        if not api_description:
            raise ApiDescriptionParseError("empty api description")

        method_start = api_description.find("(")
        if method_start == -1:
            raise ApiDescriptionParseError(f"'(' not found: {api_description}")
        method_end = api_description.rfind(")")
        if method_end < method_start:
            raise ApiDescriptionParseError(f"')' not found: {api_description}")

        class_index = api_description.rfind(".", 0, method_start)
        if class_index <= 0:
            raise ApiDescriptionParseError(f"class name not found: {api_description}")

        class_name = api_description[:class_index].strip()
        method_name = api_description[class_index + 1:method_start].strip()
        if not class_name or not method_name:
            raise ApiDescriptionParseError(f"class or method name missing: {api_description}")

        return ApiDescription(
            class_name=class_name,
            method_name=method_name,
            parameters=_split_parameters(api_description[method_start + 1:method_end]),
            line_number=_parse_line_number(api_description[method_end + 1:], api_description),
        )

    def try_parse(self, api_description: str) -> ParseResult:
        """Parse a descriptor, reporting failure in the result instead of raising."""
        try:
            return ParseResult(source=api_description, description=self.parse(api_description))
        except ApiDescriptionParseError as e:
            return ParseResult(source=api_description, error=str(e))
