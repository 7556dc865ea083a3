"""Load and validate call tree documents (YAML or JSON)."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from jsonschema import Draft202012Validator

from callstack.registry import AnnotationKeys
from callstack.trace.call_tree import CallTree, CallTreeNode
from callstack.trace.span_model import (
    DEFAULT_API_TYPE,
    UNKNOWN_LINE_NUMBER,
    Annotation,
    ApiMetaData,
    SpanAlign,
)

SCHEMA_NAME = "callstack.calltree.schema.json"


@dataclass
class CallTreeDocument:
    """A parsed call tree plus the parameter rows requested per node."""

    transaction_id: str
    tree: CallTree
    parameters: dict[int, list[tuple[str, str]]] = field(default_factory=dict)


def _schema_path() -> Path:
    return Path(__file__).resolve().parent.parent / "schemas" / SCHEMA_NAME


def validate_call_tree_data(data: Any) -> list[str]:
    """Validate call tree data against JSON schema. Returns list of errors (empty if valid)."""
    schema = json.loads(_schema_path().read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors: list[str] = []
    for error in validator.iter_errors(data):
        errors.append(f"{error.json_path}: {error.message}")
    return errors


def read_document(path: Path) -> Any:
    """Read a YAML or JSON file. JSON is valid YAML, so one parser covers both."""
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(
            f"Cannot read call tree file {path}: encoding error.\n"
            f"Ensure the file is saved as UTF-8."
        ) from e

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML/JSON in call tree file {path}:\n{e}") from e


def _api_meta_data_from_dict(data: dict[str, Any]) -> ApiMetaData:
    return ApiMetaData(
        api_info=data["api_info"],
        line_number=data.get("line_number", UNKNOWN_LINE_NUMBER),
        type=data.get("type", DEFAULT_API_TYPE),
    )


def _annotations_from_node(data: dict[str, Any]) -> list[Annotation]:
    annotations: list[Annotation] = []
    if "api_metadata" in data:
        annotations.append(
            Annotation(
                key=AnnotationKeys.API_METADATA.code,
                value=_api_meta_data_from_dict(data["api_metadata"]),
            )
        )
    for entry in data.get("annotations", []):
        value = entry.get("value")
        if entry["key"] == AnnotationKeys.API_METADATA.code and isinstance(value, dict) and "api_info" in value:
            value = _api_meta_data_from_dict(value)
        annotations.append(
            Annotation(key=entry["key"], value=value, authorized=entry.get("authorized", True))
        )
    return annotations


def _align_from_node(
    data: dict[str, Any], transaction_id: str, depth: int, default_is_span: bool
) -> SpanAlign:
    return SpanAlign(
        depth=depth,
        transaction_id=transaction_id,
        span_id=data["span_id"],
        start_time=data.get("start_time", 0),
        elapsed=data.get("elapsed", 0),
        gap=data.get("gap", 0),
        execution_milliseconds=data.get("execution_milliseconds", data.get("elapsed", 0)),
        agent_id=data.get("agent_id", ""),
        application_id=data.get("application_id", ""),
        service_type=data.get("service_type", -1),
        destination_id=data.get("destination_id", ""),
        is_span=data.get("is_span", default_is_span),
        annotations=_annotations_from_node(data),
        exception_class=data.get("exception_class"),
        exception_message=data.get("exception_message"),
    )


def build_call_tree(data: dict[str, Any]) -> CallTreeDocument:
    """Build a CallTreeDocument from already-validated data."""
    transaction_id = data["transaction_id"]
    document = CallTreeDocument(transaction_id=transaction_id, tree=CallTree())

    def add(node_data: dict[str, Any], parent: Optional[CallTreeNode], depth: int) -> None:
        align = _align_from_node(node_data, transaction_id, depth, default_is_span=parent is None)
        if parent is None:
            node = document.tree.add_root(align)
        else:
            node = document.tree.add_child(parent, align)

        parameters = [(p["method"], p.get("argument", "")) for p in node_data.get("parameters", [])]
        if parameters:
            document.parameters[node.index] = parameters

        for child in node_data.get("children", []):
            add(child, node, depth + 1)

    add(data["root"], None, 0)
    return document


def load_call_tree(path: Path) -> CallTreeDocument:
    """Load a call tree file and return the validated CallTreeDocument.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is malformed or fails schema validation
    """
    if not path.exists():
        raise FileNotFoundError(f"Call tree file not found: {path}")

    data = read_document(path)
    if data is None:
        raise ValueError(f"Call tree file is empty: {path}")
    if not isinstance(data, dict):
        raise ValueError(
            f"Call tree file must contain a mapping, got {type(data).__name__}: {path}"
        )

    errors = validate_call_tree_data(data)
    if errors:
        error_details = "\n".join(f"  - {e}" for e in errors[:5])  # Show first 5
        raise ValueError(
            f"Call tree validation failed for {path}:\n{error_details}\n\n"
            f"Required fields: transaction_id, root.span_id"
        )

    return build_call_tree(data)
