from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .core.config import normalize_config
from .core.emit import emit_specs, load_prior_specs
from .core.logging import get_event_logger
from .core.model import SpecCollection
from .core.pipeline import RunSummary, execute_pipeline
from .core.raw_schema import load_raw_schemas
from .steps.identity import PriorSpecs

PathLike = Union[Path, str]


@dataclass(frozen=True)
class RunResult:
    out_dir: Path
    specs: SpecCollection
    summary: RunSummary
    written: List[Path]


def generate_specs(
    raw_schemas: Mapping[str, Dict[str, Any]],
    prior_specs: Optional[PriorSpecs] = None,
    config: Optional[Dict[str, Any]] = None,
    *,
    schema_dir: Optional[PathLike] = None,
    logs_dir: Optional[PathLike] = None,
) -> Tuple[SpecCollection, RunSummary]:
    cfg = normalize_config(config)
    return execute_pipeline(
        raw_schemas,
        prior_specs or {},
        cfg,
        schema_dir=Path(schema_dir) if schema_dir is not None else default_schema_dir(),
        logs_dir=Path(logs_dir) if logs_dir is not None else None,
    )


def generate(
    schemas: PathLike,
    out_dir: PathLike,
    config: Optional[Dict[str, Any]] = None,
    *,
    schema_dir: Optional[PathLike] = None,
    logs_dir: Optional[PathLike] = None,
) -> RunResult:
    cfg = normalize_config(config)
    out_path = Path(out_dir)
    schema_path = Path(schema_dir) if schema_dir is not None else default_schema_dir()
    logs_path = Path(logs_dir) if logs_dir is not None else None

    # The two inputs are independent; read them side by side.
    with ThreadPoolExecutor(max_workers=2) as pool:
        raw_future = pool.submit(load_raw_schemas, Path(schemas))
        prior_future = pool.submit(load_prior_specs, out_path, schema_path / "pkg_spec.schema.json")
        raw_schemas = raw_future.result()
        prior_specs = prior_future.result()

    specs, summary = execute_pipeline(
        raw_schemas,
        prior_specs,
        cfg,
        schema_dir=schema_path,
        logs_dir=logs_path,
    )
    written, diagnostics = emit_specs(
        specs,
        out_path,
        schema_path=schema_path / "pkg_spec.schema.json",
        clean=bool(cfg.get("emit", {}).get("clean", True)),
    )
    summary.emitted = len(written)
    summary.record(diagnostics.items)
    get_event_logger(logs_path).record(
        {"event": "emit.end", "written": len(written), "failed": len(diagnostics.errors())}
    )
    return RunResult(out_dir=out_path, specs=specs, summary=summary, written=written)


def default_schema_dir() -> Path:
    return Path(__file__).resolve().parent / "schemas"
