"""Service-type and annotation-key registries.

Both registries are total: looking up a code that was never registered
returns an UNKNOWN value instead of failing. Defaults cover the well-known
codes; a YAML registry file can add or replace entries.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Iterable, Optional

import jsonschema
import yaml

logger = logging.getLogger("callstack.registry")

SCHEMA_NAME = "callstack.registry.schema.json"


@dataclass(frozen=True)
class ServiceType:
    """A kind of server, client or library an agent instruments."""

    UNKNOWN: ClassVar[ServiceType]

    code: int
    name: str
    desc: str = ""
    # Annotation whose value is shown as the argument of a span row
    argument_key: Optional[int] = None


ServiceType.UNKNOWN = ServiceType(code=-1, name="UNKNOWN", desc="UNKNOWN")


@dataclass(frozen=True)
class AnnotationKey:
    """Display metadata for an annotation code."""

    code: int
    name: str
    view_in_record_set: bool = False
    error_api_metadata: bool = False


class AnnotationKeys:
    """Well-known annotation keys."""

    API = AnnotationKey(12, "API")
    API_METADATA = AnnotationKey(13, "API-METADATA")
    RETURN_DATA = AnnotationKey(14, "RETURN_DATA", view_in_record_set=True)

    SQL_ID = AnnotationKey(20, "SQL-ID")
    SQL = AnnotationKey(21, "SQL", view_in_record_set=True)
    SQL_METADATA = AnnotationKey(22, "SQL-METADATA")
    SQL_PARAM = AnnotationKey(23, "SQL-PARAM", view_in_record_set=True)
    SQL_BINDVALUE = AnnotationKey(24, "SQL-BindValue", view_in_record_set=True)

    HTTP_URL = AnnotationKey(40, "http.url")
    HTTP_PARAM = AnnotationKey(41, "http.param", view_in_record_set=True)
    HTTP_PARAM_ENTITY = AnnotationKey(42, "http.entity", view_in_record_set=True)
    HTTP_COOKIE = AnnotationKey(45, "http.cookie", view_in_record_set=True)
    HTTP_STATUS_CODE = AnnotationKey(46, "http.status.code", view_in_record_set=True)
    HTTP_IO = AnnotationKey(49, "http.io", view_in_record_set=True)

    ARGS0 = AnnotationKey(-1, "args[0]", view_in_record_set=True)
    ARGS1 = AnnotationKey(-2, "args[1]", view_in_record_set=True)
    ARGS2 = AnnotationKey(-3, "args[2]", view_in_record_set=True)
    ARGS3 = AnnotationKey(-4, "args[3]", view_in_record_set=True)
    ARGS4 = AnnotationKey(-5, "args[4]", view_in_record_set=True)
    ARGSN = AnnotationKey(-11, "args[N]", view_in_record_set=True)

    EXCEPTION = AnnotationKey(-50, "Exception", view_in_record_set=True)
    EXCEPTION_CLASS = AnnotationKey(-51, "ExceptionClass")
    ASYNC = AnnotationKey(-100, "Asynchronous Invocation", view_in_record_set=True)

    ERROR_API_METADATA_ERROR = AnnotationKey(
        10000010, "API-METADATA-ERROR", error_api_metadata=True
    )
    ERROR_API_METADATA_AGENT_INFO_NOT_FOUND = AnnotationKey(
        10000011, "API-METADATA-AGENT-INFO-NOT-FOUND", error_api_metadata=True
    )
    ERROR_API_METADATA_IDENTIFIER_CHECK_ERROR = AnnotationKey(
        10000012, "API-METADATA-IDENTIFIER-CHECK_ERROR", error_api_metadata=True
    )
    ERROR_API_METADATA_NOT_FOUND = AnnotationKey(
        10000013, "API-METADATA-NOT-FOUND", error_api_metadata=True
    )
    ERROR_API_METADATA_DID_COLLSION = AnnotationKey(
        10000014, "API-METADATA-DID-COLLSION", error_api_metadata=True
    )

    UNKNOWN = AnnotationKey(-9999, "UNKNOWN")

    @classmethod
    def all(cls) -> list[AnnotationKey]:
        return [v for v in vars(cls).values() if isinstance(v, AnnotationKey)]


DEFAULT_SERVICE_TYPES: list[ServiceType] = [
    ServiceType(1, "UNDEFINED", "UNDEFINED"),
    ServiceType(2, "USER", "USER"),
    ServiceType(1000, "STAND_ALONE", "STAND_ALONE"),
    ServiceType(1010, "TOMCAT", "TOMCAT", argument_key=AnnotationKeys.HTTP_URL.code),
    ServiceType(1011, "TOMCAT_METHOD", "TOMCAT_METHOD"),
    ServiceType(1400, "NODE", "NODE", argument_key=AnnotationKeys.HTTP_URL.code),
    ServiceType(1401, "NODE_METHOD", "NODE_METHOD"),
    ServiceType(1700, "PYTHON", "PYTHON", argument_key=AnnotationKeys.HTTP_URL.code),
    ServiceType(1701, "PYTHON_METHOD", "PYTHON_METHOD"),
    ServiceType(2100, "MYSQL", "MYSQL", argument_key=AnnotationKeys.SQL.code),
    ServiceType(2101, "MYSQL_EXECUTE_QUERY", "MYSQL", argument_key=AnnotationKeys.SQL.code),
    ServiceType(5000, "INTERNAL_METHOD", "INTERNAL_METHOD"),
    ServiceType(5050, "SPRING", "SPRING"),
    ServiceType(5051, "SPRING_MVC", "SPRING"),
    ServiceType(8200, "REDIS", "REDIS"),
    ServiceType(9050, "HTTP_CLIENT_4", "HTTP_CLIENT", argument_key=AnnotationKeys.HTTP_URL.code),
]


class ServiceTypeRegistry:
    """Lookup of service types by code."""

    def __init__(self, service_types: Iterable[ServiceType] = ()) -> None:
        self._by_code: dict[int, ServiceType] = {}
        for service_type in service_types:
            self.register(service_type)

    @classmethod
    def default(cls) -> ServiceTypeRegistry:
        return cls(DEFAULT_SERVICE_TYPES)

    def register(self, service_type: ServiceType) -> None:
        self._by_code[service_type.code] = service_type

    def find_service_type(self, code: int) -> ServiceType:
        return self._by_code.get(code, ServiceType.UNKNOWN)

    def __len__(self) -> int:
        return len(self._by_code)


class AnnotationKeyRegistry:
    """Lookup of annotation keys by code."""

    def __init__(self, keys: Iterable[AnnotationKey] = ()) -> None:
        self._by_code: dict[int, AnnotationKey] = {}
        for key in keys:
            self.register(key)

    @classmethod
    def default(cls) -> AnnotationKeyRegistry:
        return cls(AnnotationKeys.all())

    def register(self, key: AnnotationKey) -> None:
        self._by_code[key.code] = key

    def find_annotation_key(self, code: int) -> AnnotationKey:
        """Return the key for `code`, or UNKNOWN (never shown) if unregistered."""
        return self._by_code.get(code, AnnotationKeys.UNKNOWN)

    def find_api_error_code(self, code: int) -> Optional[AnnotationKey]:
        """Return the key for `code` only if it reports an API metadata failure."""
        key = self._by_code.get(code)
        if key is not None and key.error_api_metadata:
            return key
        return None

    def __len__(self) -> int:
        return len(self._by_code)


def _schema_path() -> Path:
    return Path(__file__).parent / "schemas" / SCHEMA_NAME


def validate_registry_data(data: Any) -> list[str]:
    """Validate registry data against the JSON schema. Returns list of errors."""
    schema = json.loads(_schema_path().read_text(encoding="utf-8"))
    validator = jsonschema.Draft202012Validator(schema)
    return [f"{error.json_path}: {error.message}" for error in validator.iter_errors(data)]


def load_registries(
    path: Optional[Path] = None,
) -> tuple[ServiceTypeRegistry, AnnotationKeyRegistry]:
    """Build registries from the defaults plus an optional YAML file.

    Entries in the file replace default entries with the same code.

    Raises:
        FileNotFoundError: If `path` is given but does not exist
        ValueError: If the YAML is malformed or fails schema validation
    """
    service_types = ServiceTypeRegistry.default()
    annotation_keys = AnnotationKeyRegistry.default()
    if path is None:
        return service_types, annotation_keys

    if not path.exists():
        raise FileNotFoundError(f"Registry file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in registry file {path}:\n{e}") from e

    if data is None:
        logger.debug("Registry file %s is empty, using defaults", path)
        return service_types, annotation_keys

    errors = validate_registry_data(data)
    if errors:
        error_details = "\n".join(f"  - {e}" for e in errors[:5])
        raise ValueError(f"Registry validation failed for {path}:\n{error_details}")

    for entry in data.get("service_types", []):
        service_types.register(
            ServiceType(
                code=entry["code"],
                name=entry["name"],
                desc=entry.get("desc", entry["name"]),
                argument_key=entry.get("argument_key"),
            )
        )
    for entry in data.get("annotation_keys", []):
        annotation_keys.register(
            AnnotationKey(
                code=entry["code"],
                name=entry["name"],
                view_in_record_set=entry.get("view_in_record_set", False),
                error_api_metadata=entry.get("error_api_metadata", False),
            )
        )

    logger.debug(
        "Loaded registry file %s: %d service types, %d annotation keys",
        path,
        len(data.get("service_types", [])),
        len(data.get("annotation_keys", [])),
    )
    return service_types, annotation_keys
