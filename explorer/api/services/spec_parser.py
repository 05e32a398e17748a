"""OpenAPI document normalizer.

Turns a raw OpenAPI document (JSON or YAML text) into the navigation model the
explorer UI renders, and derives request scaffolding for a single operation.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional
import structlog
import yaml
from .models import BodyRow

logger = structlog.get_logger()

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
DEFAULT_TAG = "default"
JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class OperationRef:
    path: str
    method: str
    operation: Dict[str, Any]

    @property
    def summary(self) -> str:
        return str(self.operation.get("summary") or self.path)

    @property
    def operation_id(self) -> Optional[str]:
        value = self.operation.get("operationId")
        return None if value is None else str(value)

    @property
    def tags(self) -> List[str]:
        return [str(tag) for tag in self.operation.get("tags") or []]

    @property
    def responses(self) -> Dict[str, Any]:
        return string_keys(self.operation.get("responses") or {})


def string_keys(node: Any) -> Any:
    # YAML loads unquoted status codes such as `200:` as ints
    if isinstance(node, dict):
        return {str(k): string_keys(v) for k, v in node.items()}
    if isinstance(node, list):
        return [string_keys(v) for v in node]
    return node


def parse_spec(content: str) -> Optional["SpecModel"]:
    """Parse JSON first, then YAML. Returns None when neither yields a document."""
    try:
        doc = json.loads(content)
    except (TypeError, ValueError):
        try:
            doc = yaml.safe_load(content)
        except yaml.YAMLError as e:
            logger.warning("spec.parse_failed", error=str(e))
            return None
    if not isinstance(doc, dict):
        logger.warning("spec.parse_failed", error=f"expected a mapping, got {type(doc).__name__}")
        return None
    return SpecModel(doc)


class SpecModel:
    """Read-only view over a parsed OpenAPI document."""

    def __init__(self, doc: Dict[str, Any]):
        self.doc = doc
        self.info: Dict[str, Any] = doc.get("info") or {}
        self.paths: Dict[str, Any] = doc.get("paths") or {}

    @property
    def title(self) -> str:
        return str(self.info.get("title") or "")

    @property
    def description(self) -> str:
        return str(self.info.get("description") or "")

    @property
    def version(self) -> str:
        return str(self.info.get("version") or "")

    @property
    def servers(self) -> List[Dict[str, Any]]:
        return [string_keys(s) for s in self.doc.get("servers") or [] if isinstance(s, dict)]

    @property
    def errors(self) -> Dict[str, Any]:
        return string_keys(self.doc.get("errors") or {})

    def base_url(self, default_origin: str = "http://localhost:3000") -> str:
        url = str(self.servers[0].get("url") or "") if self.servers else ""
        if url.startswith("http"):
            return url
        return default_origin + url

    def operations(self) -> Iterator[OperationRef]:
        """Every (path, method, operation) in source order; non-method keys skipped."""
        for path, item in self.paths.items():
            if not isinstance(item, dict):
                continue
            for method, operation in item.items():
                method = str(method).lower()
                if method not in HTTP_METHODS or not isinstance(operation, dict):
                    continue
                yield OperationRef(path=str(path), method=method, operation=operation)

    def get_operation(self, path: str, method: str) -> Optional[OperationRef]:
        item = self.paths.get(path)
        if not isinstance(item, dict):
            return None
        for key, operation in item.items():
            key = str(key).lower()
            if key == method.lower() and key in HTTP_METHODS and isinstance(operation, dict):
                return OperationRef(path=path, method=key, operation=operation)
        return None

    def tag_descriptions(self) -> Dict[str, str]:
        return {
            str(t["name"]): str(t.get("description") or "")
            for t in self.doc.get("tags") or []
            if isinstance(t, dict) and "name" in t
        }

    def operations_by_tag(self) -> Dict[str, List[OperationRef]]:
        """Declared tags first, then tags first seen on operations, then ``default``."""
        groups: Dict[str, List[OperationRef]] = {name: [] for name in self.tag_descriptions()}
        untagged: List[OperationRef] = []
        for ref in self.operations():
            tags = ref.tags
            if not tags:
                untagged.append(ref)
            for tag in tags:
                groups.setdefault(tag, []).append(ref)
        if untagged:
            groups.setdefault(DEFAULT_TAG, []).extend(untagged)
        return {name: refs for name, refs in groups.items() if refs}

    def parameters(self, ref: OperationRef) -> List[Dict[str, Any]]:
        """Path-level parameters overlaid by the operation's own (keyed on name + in)."""
        merged: Dict[tuple, Dict[str, Any]] = {}
        path_item = self.paths.get(ref.path) or {}
        for param in list(path_item.get("parameters") or []) + list(ref.operation.get("parameters") or []):
            param = self.resolve(param)
            if isinstance(param, dict) and "name" in param:
                merged[(str(param["name"]), param.get("in", "query"))] = string_keys(param)
        return list(merged.values())

    def resolve(self, node: Any) -> Any:
        """Resolve a single local ``#/...`` reference; anything else is returned as is."""
        if not isinstance(node, dict) or not isinstance(node.get("$ref"), str):
            return node
        ref = node["$ref"]
        if not ref.startswith("#/"):
            return node
        target: Any = self.doc
        for part in ref[2:].split("/"):
            if not isinstance(target, dict) or part not in target:
                return node
            target = target[part]
        return target

    def example_body(self, ref: OperationRef) -> Any:
        """Example JSON body for an operation, or None when it takes no body.

        Uses the media type's ``example``; otherwise one level of schema
        properties filled with their own example or a type placeholder.
        """
        body = self.resolve(ref.operation.get("requestBody"))
        if not isinstance(body, dict):
            return None
        media = (body.get("content") or {}).get(JSON_MEDIA_TYPE)
        if not isinstance(media, dict):
            return {}
        if "example" in media:
            return string_keys(media["example"])
        schema = self.resolve(media.get("schema"))
        properties = schema.get("properties") if isinstance(schema, dict) else None
        if not isinstance(properties, dict):
            return {}
        return {name: placeholder_value(prop) for name, prop in properties.items()}


def placeholder_value(schema: Any) -> Any:
    if not isinstance(schema, dict):
        return None
    if "example" in schema:
        return schema["example"]
    kind = schema.get("type")
    if kind == "string":
        return "string"
    if kind == "integer":
        return 0
    return None


def substitute_path(template: str, values: Mapping[str, Any]) -> str:
    # Unknown placeholders stay in the URL as "{name}"
    url = template
    for name, value in values.items():
        url = url.replace("{" + name + "}", str(value))
    return url


def request_headers(bearer_token: Optional[str] = None) -> Dict[str, str]:
    headers = {"Content-Type": JSON_MEDIA_TYPE}
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    return headers


def coerce_row(row: BodyRow) -> Any:
    if row.type == "number":
        try:
            number = float(row.value)
        except ValueError:
            return None
        return int(number) if number.is_integer() else number
    if row.type == "boolean":
        return row.value.lower() == "true"
    if row.type == "json":
        try:
            return json.loads(row.value)
        except ValueError:
            return row.value
    return row.value


def body_from_rows(rows: List[BodyRow]) -> Dict[str, Any]:
    return {row.key: coerce_row(row) for row in rows if row.enabled and row.key}
