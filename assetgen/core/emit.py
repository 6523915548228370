from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .canonical import hash_bytes, pretty_json
from .contracts import validate_document
from .diagnostics import AssetGenError, Diagnostic, Diagnostics, EmissionError
from .model import PkgSpec

_UNSAFE = re.compile(r"[^A-Za-z0-9:._-]")


def spec_filename(name: str) -> str:
    return _UNSAFE.sub("_", name) + ".json"


def render_spec(spec: PkgSpec) -> str:
    return pretty_json(spec.to_dict())


def validate_pkg_spec(document: Dict[str, Any], schema_path: Path) -> Diagnostics:
    return validate_document(document, schema_path, code="E-PKG-SCHEMA", spec=document.get("name"))


def load_prior_specs(out_dir: Path, schema_path: Optional[Path] = None) -> Dict[str, PkgSpec]:
    """Read previously emitted specs keyed by spec name.

    A document that cannot be read is fatal: skipping it would mint a new
    schema id for an entity users may already reference.
    """
    prior: Dict[str, PkgSpec] = {}
    if not out_dir.is_dir():
        return prior
    for path in sorted(out_dir.glob("*.json")):
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise _prior_error(path, str(exc)) from exc
        if not isinstance(document, dict):
            raise _prior_error(path, "document is not an object")
        if schema_path is not None:
            errors = validate_pkg_spec(document, schema_path)
            if errors.has_errors():
                raise _prior_error(path, errors.items[0].message)
        try:
            spec = PkgSpec.from_dict(document)
        except (KeyError, TypeError, ValueError) as exc:
            raise _prior_error(path, f"malformed spec: {exc}") from exc
        prior[spec.name] = spec
    return prior


def emit_specs(
    specs: Iterable[PkgSpec],
    out_dir: Path,
    *,
    schema_path: Optional[Path] = None,
    clean: bool = True,
) -> Tuple[List[Path], Diagnostics]:
    """Write one pretty-printed document per spec.

    Failing to create ``out_dir`` aborts with ``EmissionError``; a single
    spec that cannot be written is recorded and skipped, and its previous
    document stays in place. With ``clean`` only documents that belong to
    no spec of this run are removed, after everything has been written.
    """
    diagnostics = Diagnostics()
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise EmissionError(
            Diagnostic(code="E-EMIT", message=f"Cannot prepare {out_dir}: {exc}", location=str(out_dir))
        ) from exc

    written: List[Path] = []
    owners: Dict[str, str] = {}
    keep: Set[str] = set()
    for spec in specs:
        target = out_dir / spec_filename(spec.name)
        owner = owners.setdefault(target.name, spec.name)
        if owner != spec.name:
            diagnostics.add(
                _emit_error(spec.name, target, f"{spec.name} and {owner} both map to {target.name}")
            )
            continue
        keep.add(target.name)
        try:
            document = spec.to_dict()
            if schema_path is not None:
                validate_pkg_spec(document, schema_path).raise_for_errors(EmissionError)
            _write_atomic(target, pretty_json(document))
        except EmissionError as exc:
            diagnostics.add(exc.diagnostic)
            continue
        except (OSError, TypeError, ValueError) as exc:
            diagnostics.add(_emit_error(spec.name, target, f"Error writing {target.name}: {exc}"))
            continue
        written.append(target)

    if clean:
        for stale in sorted(out_dir.glob("*.json")):
            if stale.name in keep:
                continue
            try:
                stale.unlink()
            except OSError as exc:
                diagnostics.add(_emit_error(None, stale, f"Cannot remove stale {stale.name}: {exc}"))
    return written, diagnostics


def hash_file(path: Path) -> str:
    return hash_bytes(path.read_bytes())


def _write_atomic(target: Path, text: str) -> None:
    scratch = target.with_name(target.name + ".tmp")
    try:
        scratch.write_text(text, encoding="utf-8")
        scratch.replace(target)
    finally:
        scratch.unlink(missing_ok=True)


def _emit_error(spec_name: Optional[str], target: Path, message: str) -> Diagnostic:
    return Diagnostic(
        code="E-EMIT",
        message=message,
        location=str(target),
        data={"spec": spec_name},
    )


def _prior_error(path: Path, reason: str) -> AssetGenError:
    return AssetGenError(
        Diagnostic(
            code="E-PRIOR-INVALID",
            message=f"Cannot load previous spec {path.name}: {reason}",
            location=str(path),
        )
    )
