from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from assetgen.core.diagnostics import Diagnostic, SchemaTranslationError
from assetgen.core.model import (
    DOMAIN,
    DOMAIN_PATH,
    ROOT,
    PkgSpec,
    PropKind,
    PropSpec,
    SpecCollection,
    entry_name,
    object_prop,
)
from assetgen.core.raw_schema import RawSchema, parse_raw_schema, validate_raw_schema

_SCALAR_TYPES = {
    "string": PropKind.STRING,
    "integer": PropKind.NUMBER,
    "number": PropKind.NUMBER,
    "boolean": PropKind.BOOLEAN,
}


class _Translator:
    def __init__(self, raw: RawSchema, max_depth: int) -> None:
        self.raw = raw
        self.max_depth = max_depth
        self.read_only = raw.read_only_paths()
        self.primary = raw.primary_identifier_paths()

    def domain(self) -> PropSpec:
        required = set(self.raw.required)
        children = tuple(
            self.prop(name, definition, DOMAIN_PATH, (name,), depth=1, required=name in required)
            for name, definition in self.raw.properties.items()
        )
        return PropSpec(name=DOMAIN, kind=PropKind.OBJECT, path=DOMAIN_PATH, children=children)

    def prop(
        self,
        name: str,
        definition: Any,
        parent_path: Tuple[str, ...],
        flag_path: Tuple[str, ...],
        *,
        depth: int,
        required: bool = False,
        flagged: bool = True,
    ) -> PropSpec:
        if depth > self.max_depth:
            raise self._error(
                f"Property {'/'.join(flag_path)} exceeds maximum depth {self.max_depth}",
                flag_path,
            )
        definition = self._resolve(definition, flag_path)
        path = parent_path + (name,)
        kind_name = _type_name(definition)
        enum = definition.get("enum")
        common: Dict[str, Any] = {
            "required": required,
            "read_only": flagged and flag_path in self.read_only,
            "primary_identifier": flagged and flag_path in self.primary,
            "documentation": definition.get("description"),
            "enum": tuple(enum) if isinstance(enum, list) else None,
            "default": definition.get("default"),
        }

        if kind_name in _SCALAR_TYPES:
            return PropSpec(name=name, kind=_SCALAR_TYPES[kind_name], path=path, **common)

        if kind_name == "array":
            items = definition.get("items")
            if not isinstance(items, dict):
                raise self._error(f"Array property {'/'.join(flag_path)} has no item schema", flag_path)
            element = self.prop(
                entry_name(name), items, path, flag_path, depth=depth + 1, flagged=False
            )
            return PropSpec(name=name, kind=PropKind.ARRAY, path=path, element=element, **common)

        if kind_name == "object":
            properties = definition.get("properties")
            if isinstance(properties, dict) and properties:
                nested_required = self._required_names(definition, flag_path)
                children = tuple(
                    self.prop(
                        child_name,
                        child_definition,
                        path,
                        flag_path + (child_name,),
                        depth=depth + 1,
                        required=child_name in nested_required,
                    )
                    for child_name, child_definition in properties.items()
                )
                return PropSpec(name=name, kind=PropKind.OBJECT, path=path, children=children, **common)
            value = self.prop(
                entry_name(name),
                _map_value(definition),
                path,
                flag_path,
                depth=depth + 1,
                flagged=False,
            )
            return PropSpec(name=name, kind=PropKind.MAP, path=path, value=value, **common)

        raise self._error(
            f"Unrecognized shape for property {'/'.join(flag_path)}: {kind_name or 'untyped'}",
            flag_path,
        )

    def _resolve(self, definition: Any, flag_path: Tuple[str, ...]) -> Dict[str, Any]:
        if not isinstance(definition, dict):
            raise self._error(f"Property {'/'.join(flag_path)} is not an object", flag_path)
        hops = 0
        while "$ref" in definition:
            hops += 1
            if hops > self.max_depth:
                raise self._error(f"Reference chain too long at {'/'.join(flag_path)}", flag_path)
            ref = definition["$ref"]
            prefix = "#/definitions/"
            if not isinstance(ref, str) or not ref.startswith(prefix):
                raise self._error(f"Unsupported reference {ref!r}", flag_path)
            target = self.raw.definitions.get(ref[len(prefix):])
            if not isinstance(target, dict):
                raise self._error(f"Dangling reference {ref!r}", flag_path)
            overrides = {key: value for key, value in definition.items() if key != "$ref"}
            definition = {**target, **overrides}
        return definition

    def _required_names(self, definition: Dict[str, Any], flag_path: Tuple[str, ...]) -> Set[str]:
        required = definition.get("required")
        if required is None:
            return set()
        if not isinstance(required, list) or not all(isinstance(item, str) for item in required):
            raise self._error(
                f"Property {'/'.join(flag_path)} has a malformed required list: {required!r}",
                flag_path,
            )
        return set(required)

    def _error(self, message: str, flag_path: Tuple[str, ...]) -> SchemaTranslationError:
        return SchemaTranslationError(
            Diagnostic(
                code="E-SCHEMA-TRANSLATE",
                message=message,
                location="/".join(flag_path),
                data={"spec": self.raw.type_name},
            )
        )


def build_spec(
    record: Dict[str, Any],
    *,
    variant: str,
    max_depth: int,
    color: str,
    schema_path: Optional[Path] = None,
) -> PkgSpec:
    if schema_path is not None:
        validate_raw_schema(record, schema_path).raise_for_errors(SchemaTranslationError)
    raw, diagnostics = parse_raw_schema(record)
    if raw is None:
        raise SchemaTranslationError(diagnostics.items[0])
    domain = _Translator(raw, max_depth).domain()
    return PkgSpec(
        name=raw.type_name,
        type_name=raw.type_name,
        variant=variant,
        root=object_prop(ROOT, (), [domain]),
        category=category_for(raw.type_name),
        color=color,
        description=raw.description,
    )


def build_specs(
    records: Mapping[str, Dict[str, Any]],
    config: Dict[str, Any],
    schema_path: Optional[Path] = None,
) -> SpecCollection:
    """Translate every raw record, isolating failures per schema."""
    builder_cfg = config.get("builder", {})
    workers = int(builder_cfg.get("workers", 1) or 1)
    options = {
        "variant": config.get("variant", "v0"),
        "max_depth": int(builder_cfg.get("max_depth", 10)),
        "color": config.get("defaults", {}).get("color", ""),
        "schema_path": schema_path,
    }

    def _translate(item: Tuple[str, Dict[str, Any]]) -> Union[PkgSpec, Diagnostic]:
        try:
            return build_spec(item[1], **options)
        except SchemaTranslationError as exc:
            diagnostic = exc.diagnostic
            diagnostic.data = {**(diagnostic.data or {}), "spec": item[0]}
            return diagnostic

    items = sorted(records.items())
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_translate, items))
    else:
        results = [_translate(item) for item in items]

    specs: List[PkgSpec] = []
    failures: List[Diagnostic] = []
    seen: set[str] = set()
    for (key, _), outcome in zip(items, results):
        if isinstance(outcome, Diagnostic):
            failures.append(outcome)
            continue
        spec = outcome
        if spec.name in seen:
            failures.append(
                Diagnostic(
                    code="E-SCHEMA-TRANSLATE",
                    message=f"Duplicate type name {spec.name}",
                    location="typeName",
                    data={"spec": key},
                )
            )
            continue
        seen.add(spec.name)
        specs.append(spec)
    return SpecCollection.of(specs).evolve(diagnostics=failures)


def category_for(type_name: str) -> str:
    return "::".join(type_name.split("::")[:2])


def _type_name(definition: Dict[str, Any]) -> Optional[str]:
    declared = definition.get("type")
    if isinstance(declared, list):
        declared = next((item for item in declared if item != "null"), None)
    if isinstance(declared, str):
        return declared
    if "properties" in definition:
        return "object"
    if "items" in definition:
        return "array"
    if "enum" in definition:
        return "string"
    return None


def _map_value(definition: Dict[str, Any]) -> Dict[str, Any]:
    pattern = definition.get("patternProperties")
    if isinstance(pattern, dict):
        for value in pattern.values():
            if isinstance(value, dict):
                return value
    additional = definition.get("additionalProperties")
    if isinstance(additional, dict):
        return additional
    return {"type": "string"}
