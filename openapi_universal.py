########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
import json
import logging
from copy import deepcopy
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union
from urllib.parse import urlparse

import yaml

from fuzz_models import BODYLESS_METHODS, HTTP_METHODS, FieldSchema, FuzzingData, HeaderParam
from json_utils import FIELD_SEPARATOR, dump_payload

__all__ = [
    "ContractError",
    "iter_operations",
    "build_fuzzing_data",
    "iter_fuzzing_data",
    "load_spec",
    "infer_base_url",
]

logger = logging.getLogger(__name__)

MAX_SCHEMA_DEPTH = 8


class ContractError(Exception):
    pass


#================funtion infer_base_url infer base URL from OpenAPI/Swagger servers/host ##########
def infer_base_url(spec: Dict[str, Any]) -> str:
    servers = (spec or {}).get("servers") or []
    for s in servers:
        u = (s or {}).get("url") or ""
        if u.startswith(("http://", "https://")):
            return u.rstrip("/") + "/"
    host = (spec or {}).get("host", "")
    base_path = (spec or {}).get("basePath", "/") or "/"
    schemes = (spec or {}).get("schemes") or ["http"]
    if host:
        return f"{schemes[0]}://{host}{base_path.rstrip('/')}/"
    return ""


#================funtion _coerce_list coerce value to list ##########
def _coerce_list(x: Any) -> List[Any]:
    if x is None:
        return []
    if isinstance(x, list):
        return x
    return [x]


#================funtion _resolve_ref follow a local $ref ##########
def _resolve_ref(spec: Dict[str, Any], node: Any, seen: Optional[Set[str]] = None) -> Any:
    seen = seen or set()
    while isinstance(node, dict) and "$ref" in node:
        ref = str(node["$ref"])
        if not ref.startswith("#/") or ref in seen:
            return {}
        seen.add(ref)
        target: Any = spec
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            target = target.get(part) if isinstance(target, dict) else None
            if target is None:
                logger.debug("Unresolvable $ref %s", ref)
                return {}
        node = target
    return node


#================funtion _merge_all_of flatten allOf compositions ##########
def _merge_all_of(spec: Dict[str, Any], schema: Dict[str, Any]) -> Dict[str, Any]:
    if "allOf" not in schema:
        return schema
    merged: Dict[str, Any] = {k: v for k, v in schema.items() if k != "allOf"}
    props: Dict[str, Any] = dict(merged.get("properties") or {})
    required: List[str] = list(merged.get("required") or [])
    for part in schema.get("allOf") or []:
        part = _merge_all_of(spec, _resolve_ref(spec, part))
        props.update(part.get("properties") or {})
        required.extend(part.get("required") or [])
        merged.setdefault("type", part.get("type"))
    merged["properties"] = props
    merged["required"] = required
    return merged


def _schema(spec: Dict[str, Any], node: Any) -> Dict[str, Any]:
    resolved = _resolve_ref(spec, node)
    if not isinstance(resolved, dict):
        return {}
    resolved = _merge_all_of(spec, resolved)
    for key in ("oneOf", "anyOf"):
        if resolved.get(key) and "properties" not in resolved and "type" not in resolved:
            return _schema(spec, resolved[key][0])
    return resolved


#================funtion _iter_path_items iterate path items from spec ##########
def _iter_path_items(spec: Dict[str, Any]) -> Iterable[Tuple[str, Dict[str, Any]]]:
    paths = spec.get("paths") or {}
    for p, item in paths.items():
        if not isinstance(item, dict):
            continue
        yield p, item


#================funtion _merge_parameters merge path-level and op-level parameters ##########
def _merge_parameters(spec: Dict[str, Any], path_level: List[Any], op_level: List[Any]) -> List[Dict[str, Any]]:
    merged: List[Dict[str, Any]] = []
    seen = set()
    for src in (op_level or []) + (path_level or []):
        src = _resolve_ref(spec, src)
        if not isinstance(src, dict):
            continue
        key = (src.get("name"), src.get("in"))
        if key in seen:
            continue
        seen.add(key)
        merged.append(src)
    return merged


#================funtion _swagger2_request_body_from_params convert Swagger 2 params to requestBody ##########
def _swagger2_request_body_from_params(params: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    body_params = [p for p in params if p.get("in") == "body"]
    form_params = [p for p in params if p.get("in") == "formData"]
    if body_params:
        schema = body_params[0].get("schema") or {}
        return {"content": {"application/json": {"schema": schema}}}
    if form_params:
        props = {}
        required = []
        for p in form_params:
            nm = p.get("name", "")
            props[nm] = {"type": p.get("type", "string"), "format": p.get("format", "")}
            if p.get("required"):
                required.append(nm)
        return {"content": {"application/json": {"schema": {"type": "object", "properties": props, "required": required}}}}
    return None


#================funtion iter_operations yield normalized operations from spec ##########
def iter_operations(spec: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    for path, item in _iter_path_items(spec or {}):
        path_params = _coerce_list(item.get("parameters"))
        for verb, op in item.items():
            m = verb.upper()
            if m not in HTTP_METHODS:
                continue
            raw = op if isinstance(op, dict) else {}
            merged_params = _merge_parameters(spec, path_params, _coerce_list(raw.get("parameters")))
            if "requestBody" in raw:
                request_body = _resolve_ref(spec, raw.get("requestBody"))
            else:
                request_body = _swagger2_request_body_from_params(merged_params)
            yield {
                "method": m,
                "path": path,
                "operationId": raw.get("operationId", ""),
                "summary": raw.get("summary", ""),
                "parameters": merged_params,
                "requestBody": request_body,
            }


#================funtion _example_for_type return example value by type/format ##########
def _example_for_type(t: str, fmt: str = "") -> Any:
    t = (t or "string").lower()
    if t == "string":
        if fmt == "date-time":
            return datetime(2024, 1, 1, 12, 0, 0).isoformat()
        if fmt == "date":
            return "2024-01-01"
        if fmt == "email":
            return "test@example.com"
        if fmt == "uuid":
            return "3fa85f64-5717-4562-b3fc-2c963f66afa6"
        if fmt in ("uri", "url"):
            return "https://example.com"
        return "test"
    if t == "integer":
        return 1
    if t == "number":
        return 1.0
    if t == "boolean":
        return True
    if t == "array":
        return []
    if t == "object":
        return {}
    return "test"


#================funtion _body_from_schema produce example body from JSON schema ##########
def _body_from_schema(spec: Dict[str, Any], schema: Any, depth: int = 0) -> Any:
    schema = _schema(spec, schema)
    if "example" in schema:
        return deepcopy(schema["example"])
    if depth > MAX_SCHEMA_DEPTH:
        return None
    t = schema.get("type")
    if t == "object" or ("properties" in schema and not t):
        out = {}
        for name, ps in (schema.get("properties") or {}).items():
            ps = _schema(spec, ps)
            if "enum" in ps and isinstance(ps["enum"], list) and ps["enum"]:
                out[name] = ps["enum"][0]
            elif ps.get("type") in ("object", "array") or "properties" in ps or "example" in ps:
                out[name] = _body_from_schema(spec, ps, depth + 1)
            else:
                out[name] = _example_for_type(ps.get("type", "string"), ps.get("format", ""))
        return out
    if t == "array":
        return [_body_from_schema(spec, schema.get("items") or {}, depth + 1)]
    if schema.get("enum"):
        return schema["enum"][0]
    return _example_for_type(t or "string", schema.get("format", ""))


#================funtion _collect_fields flatten schema properties into field schemas ##########
def _collect_fields(spec: Dict[str, Any], schema: Any, prefix: str = "", required: bool = True,
                    depth: int = 0) -> Dict[str, FieldSchema]:
    out: Dict[str, FieldSchema] = {}
    schema = _schema(spec, schema)
    if depth > MAX_SCHEMA_DEPTH:
        return out
    if schema.get("type") == "array":
        return _collect_fields(spec, schema.get("items") or {}, prefix, required, depth + 1)
    reqd = set(schema.get("required") or [])
    for name, ps in (schema.get("properties") or {}).items():
        ps = _schema(spec, ps)
        full = f"{prefix}{FIELD_SEPARATOR}{name}" if prefix else name
        ptype = ps.get("type") or ("object" if "properties" in ps else "string")
        out[full] = FieldSchema(
            type=str(ptype),
            format=str(ps.get("format") or ""),
            required=required and name in reqd,
            min_length=ps.get("minLength"),
            max_length=ps.get("maxLength"),
            pattern=ps.get("pattern"),
            enum=tuple(ps.get("enum") or ()),
        )
        if ptype in ("object", "array"):
            out.update(_collect_fields(spec, ps, full, required and name in reqd, depth + 1))
    return out


def _param_value(p: Dict[str, Any]) -> Any:
    schema = p.get("schema") or {}
    if not schema and p.get("type"):
        schema = {"type": p["type"], "format": p.get("format", "")}
    for src in (p, schema):
        if src.get("example") is not None:
            return src["example"]
    if schema.get("default") is not None:
        return schema["default"]
    if schema.get("enum"):
        return schema["enum"][0]
    return _example_for_type(schema.get("type", "string"), schema.get("format", ""))


def _as_param_text(val: Any) -> str:
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, (list, tuple)):
        return ",".join(map(str, val))
    return str(val)


#================funtion build_fuzzing_data operation to immutable fuzzing context ##########
def build_fuzzing_data(spec: Dict[str, Any], op: Dict[str, Any]) -> FuzzingData:
    method = (op.get("method") or "GET").upper()
    contract_path = op.get("path") or "/"
    headers: List[HeaderParam] = []
    query: Dict[str, str] = {}
    path_render = contract_path

    for p in _coerce_list(op.get("parameters")):
        loc = (p.get("in") or "").lower()
        name = p.get("name")
        if not name:
            continue
        if loc == "path":
            path_render = path_render.replace("{" + name + "}", _as_param_text(_param_value(p)))
        elif loc == "query" and (p.get("required") or p.get("example") is not None):
            query[name] = _as_param_text(_param_value(p))
        elif loc == "header" and name.lower() != "authorization":
            headers.append(HeaderParam(name, _as_param_text(_param_value(p)), bool(p.get("required"))))

    payload = ""
    fields: Dict[str, FieldSchema] = {}
    content = (op.get("requestBody") or {}).get("content") if isinstance(op.get("requestBody"), dict) else None
    if isinstance(content, dict) and content:
        media = content.get("application/json") or next(iter(content.values())) or {}
        schema = media.get("schema") or {}
        body = media.get("example")
        if body is None:
            body = _body_from_schema(spec, schema)
        payload = dump_payload(body)
        fields = _collect_fields(spec, schema)
    if method in BODYLESS_METHODS and not payload:
        # query parameters are the fuzzable payload of body-less operations
        params: Dict[str, Any] = {}
        for p in _coerce_list(op.get("parameters")):
            if (p.get("in") or "").lower() == "query" and p.get("name"):
                schema = p.get("schema") or {"type": p.get("type", "string")}
                params[p["name"]] = _as_param_text(_param_value(p))
                fields[p["name"]] = FieldSchema(type="string" if schema.get("type") in (None, "string") else str(schema["type"]),
                                                format=str(schema.get("format") or ""),
                                                required=bool(p.get("required")))
        if params:
            payload = dump_payload(params)
            query = {}

    return FuzzingData(
        contract_path=contract_path,
        method=method,
        payload=payload,
        field_schemas=fields,
        all_fields=frozenset(fields),
        headers=tuple(headers),
        path=path_render,
        query_params=query,
    )


#================funtion iter_fuzzing_data every operation of a contract, filtered ##########
def iter_fuzzing_data(spec: Dict[str, Any], paths: Optional[Iterable[str]] = None,
                      methods: Optional[Iterable[str]] = None) -> Iterator[FuzzingData]:
    wanted_paths = set(paths or [])
    wanted_methods = {m.upper() for m in (methods or [])}
    for op in iter_operations(spec):
        if wanted_paths and op["path"] not in wanted_paths:
            continue
        if wanted_methods and op["method"] not in wanted_methods:
            continue
        try:
            yield build_fuzzing_data(spec, op)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Could not build request for %s %s: %s", op["method"], op["path"], e)


#================funtion load_spec load JSON/YAML spec and inject base URL ##########
def load_spec(source: Union[str, Path, Dict[str, Any]], inject_base_url: Optional[str] = None) -> Dict[str, Any]:
    if isinstance(source, dict):
        spec = deepcopy(source)
    else:
        try:
            text = Path(source).read_text(encoding="utf-8")
        except OSError as e:
            raise ContractError(f"Contract file not readable: {source}: {e}") from e
        try:
            spec = json.loads(text)
        except json.JSONDecodeError:
            try:
                spec = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ContractError(f"Spec parse failed (not JSON/YAML): {e}") from e
    if not isinstance(spec, dict):
        raise ContractError("Spec content must be a JSON/YAML object.")

    if inject_base_url:
        inj = str(inject_base_url).strip()
        if "://" not in inj:
            inj = "http://" + inj
        inj = inj.rstrip("/") + "/"
        if "openapi" in spec and not infer_base_url(spec):
            spec["servers"] = [{"url": inj}]
        elif "swagger" in spec:
            p = urlparse(inj)
            if p.netloc and not spec.get("host"):
                spec["host"] = p.netloc
            if p.scheme and not spec.get("schemes"):
                spec["schemes"] = [p.scheme]
            if not spec.get("basePath"):
                spec["basePath"] = p.path or "/"
    return spec
