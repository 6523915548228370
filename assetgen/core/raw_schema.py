from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import load_data
from .contracts import validate_document
from .diagnostics import Diagnostic, Diagnostics


class RawSchema(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type_name: str = Field(alias="typeName")
    description: str | None = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    definitions: Dict[str, Any] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)
    read_only_properties: List[str] = Field(default_factory=list, alias="readOnlyProperties")
    primary_identifier: List[str] = Field(default_factory=list, alias="primaryIdentifier")

    def read_only_paths(self) -> set[Tuple[str, ...]]:
        return {_pointer_path(pointer) for pointer in self.read_only_properties}

    def primary_identifier_paths(self) -> set[Tuple[str, ...]]:
        return {_pointer_path(pointer) for pointer in self.primary_identifier}


def load_raw_schemas(path: Path) -> Dict[str, Dict[str, Any]]:
    """Load raw schema records keyed by type name.

    ``path`` is either a directory of one-record JSON files or a single
    JSON/YAML/TOML file mapping type names to records.
    """
    records: Dict[str, Dict[str, Any]] = {}
    if path.is_dir():
        for item in sorted(path.glob("*.json")):
            with item.open("r", encoding="utf-8") as handle:
                record = json.load(handle)
            if not isinstance(record, dict):
                raise ValueError(f"Raw schema {item.name} must be a JSON object")
            records[str(record.get("typeName") or item.stem)] = record
        return records
    data = load_data(path)
    if not isinstance(data, dict):
        raise ValueError("Raw schema file must map type names to records")
    for type_name, record in data.items():
        if not isinstance(record, dict):
            raise ValueError(f"Raw schema {type_name} must be an object")
        records[str(type_name)] = record
    return records


def validate_raw_schema(record: Dict[str, Any], schema_path: Path) -> Diagnostics:
    return validate_document(record, schema_path, code="E-RAW-SCHEMA", spec=record.get("typeName"))


def parse_raw_schema(record: Dict[str, Any]) -> Tuple[RawSchema | None, Diagnostics]:
    diagnostics = Diagnostics()
    try:
        return RawSchema.model_validate(record), diagnostics
    except ValidationError as exc:
        diagnostics.add(
            Diagnostic(
                code="E-RAW-SCHEMA",
                message=str(exc),
                location="typeName",
                data={"spec": record.get("typeName")},
            )
        )
    return None, diagnostics


def _pointer_path(pointer: str) -> Tuple[str, ...]:
    segments = [segment for segment in pointer.split("/") if segment]
    if segments and segments[0] == "properties":
        segments = segments[1:]
    # Array items are addressed with "*" and carry no name of their own
    return tuple(segment for segment in segments if segment != "*")
