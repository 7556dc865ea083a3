"""Schema validation for call tree documents and registry files."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import jsonschema
import yaml

from callstack.registry import SCHEMA_NAME as REGISTRY_SCHEMA_NAME
from callstack.trace.loader import SCHEMA_NAME as CALL_TREE_SCHEMA_NAME


@dataclass
class ValidationError:
    """A single validation error."""

    path: str
    message: str


@dataclass
class ValidationResult:
    """Result of validating a file."""

    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    file_path: str = ""

    def summary(self) -> str:
        """Return a human-readable summary."""
        if self.valid:
            return f"✓ {self.file_path}: Valid"
        lines = [f"✗ {self.file_path}: {len(self.errors)} error(s)"]
        for err in self.errors:
            lines.append(f"  {err.path} - {err.message}")
        return "\n".join(lines)


def _get_schema_dir() -> Path:
    """Get the directory containing schemas."""
    return Path(__file__).resolve().parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict[str, Any]:
    """Load a JSON schema by name."""
    schema_path = _get_schema_dir() / schema_name
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _format_path(path: list[Any]) -> str:
    """Format a jsonschema path as a dotted string."""
    if not path:
        return "$"
    parts = ["$"]
    for p in path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(f".{p}")
    return "".join(parts)


def _validate_file(
    file_path: str | Path,
    schema_name: str,
    check: Callable[[Any], list[ValidationError]] | None = None,
) -> ValidationResult:
    file_path = Path(file_path)
    result = ValidationResult(valid=True, file_path=str(file_path))

    if not file_path.exists():
        result.valid = False
        result.errors.append(ValidationError(path="$", message=f"File not found: {file_path}"))
        return result

    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        result.valid = False
        result.errors.append(ValidationError(path="$", message=f"Invalid YAML/JSON: {e}"))
        return result

    try:
        schema = _load_schema(schema_name)
    except FileNotFoundError as e:
        result.valid = False
        result.errors.append(ValidationError(path="$", message=str(e)))
        return result

    validator = jsonschema.Draft202012Validator(schema)
    for err in validator.iter_errors(data):
        result.valid = False
        result.errors.append(ValidationError(path=_format_path(list(err.absolute_path)), message=err.message))

    if result.valid and check is not None:
        extra = check(data)
        if extra:
            result.valid = False
            result.errors.extend(extra)

    return result


def _check_span_ids(data: dict[str, Any]) -> list[ValidationError]:
    """Span ids inside one transaction must be unique."""
    errors: list[ValidationError] = []
    seen: set[int] = set()
    stack: list[tuple[str, dict[str, Any]]] = [("$.root", data["root"])]
    while stack:
        path, node = stack.pop()
        span_id = node["span_id"]
        if node.get("is_span", path == "$.root"):
            if span_id in seen:
                errors.append(ValidationError(path=f"{path}.span_id", message=f"duplicate span_id {span_id}"))
            seen.add(span_id)
        for i, child in enumerate(node.get("children", [])):
            stack.append((f"{path}.children[{i}]", child))
    return errors


def validate_call_tree(file_path: str | Path) -> ValidationResult:
    """Validate a call tree document against callstack.calltree.schema.json.

    Besides the schema, spans (not span events) must have unique span ids.
    """
    return _validate_file(file_path, CALL_TREE_SCHEMA_NAME, check=_check_span_ids)


def validate_registry(file_path: str | Path) -> ValidationResult:
    """Validate a registry YAML file against callstack.registry.schema.json."""
    return _validate_file(file_path, REGISTRY_SCHEMA_NAME)
