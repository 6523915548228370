from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from .diagnostics import Diagnostic, Diagnostics


def validate_document(
    document: Dict[str, Any],
    schema_path: Path,
    *,
    code: str,
    spec: Optional[str] = None,
) -> Diagnostics:
    """Check ``document`` against a JSON Schema file, one diagnostic per error."""
    diagnostics = Diagnostics()
    with schema_path.open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    schema["$id"] = schema_path.resolve().as_uri()
    validator = jsonschema.Draft202012Validator(schema)
    for error in sorted(validator.iter_errors(document), key=str):
        diagnostics.add(
            Diagnostic(
                code=code,
                message=error.message,
                location="/".join(str(x) for x in error.path),
                data={"spec": spec},
            )
        )
    return diagnostics
