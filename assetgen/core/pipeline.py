from __future__ import annotations

import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from assetgen.steps.action_funcs import generate_default_action_funcs
from assetgen.steps.asset_funcs import generate_asset_funcs
from assetgen.steps.build import build_specs
from assetgen.steps.defaults import add_default_props_and_sockets
from assetgen.steps.identity import PriorSpecs, update_schema_ids
from assetgen.steps.input_sockets import create_input_sockets
from assetgen.steps.intrinsics import generate_intrinsic_funcs
from assetgen.steps.leaf_funcs import generate_default_leaf_funcs
from assetgen.steps.management_funcs import generate_default_management_funcs
from assetgen.steps.output_sockets import generate_output_sockets
from assetgen.steps.sub_assets import generate_sub_assets

from .diagnostics import Diagnostic, IdentityConflictError
from .logging import get_event_logger, get_logger
from .model import SpecCollection
from .version import __version__

Stage = Callable[..., SpecCollection]

# Each stage completes over the whole collection before the next starts.
# Sub-assets are extracted after the function generators so they only ever
# receive intrinsics and an asset function.
STAGES: Tuple[Tuple[str, Stage], ...] = (
    ("output_sockets", generate_output_sockets),
    ("default_props_and_sockets", add_default_props_and_sockets),
    ("action_funcs", generate_default_action_funcs),
    ("leaf_funcs", generate_default_leaf_funcs),
    ("management_funcs", generate_default_management_funcs),
    ("sub_assets", generate_sub_assets),
    ("intrinsic_funcs", generate_intrinsic_funcs),
    ("input_sockets", create_input_sockets),
    ("asset_funcs", generate_asset_funcs),
)


@dataclass
class RunSummary:
    attempted: int = 0
    built: int = 0
    emitted: int = 0
    failures: List[Diagnostic] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)
    steps: List[Dict[str, Any]] = field(default_factory=list)
    lineage: List[Dict[str, str]] = field(default_factory=list)
    status: str = "pending"

    def record(self, diagnostics: List[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            if diagnostic.severity == "ERROR":
                self.failures.append(diagnostic)
            else:
                self.warnings.append(diagnostic)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "built": self.built,
            "emitted": self.emitted,
            "status": self.status,
            "failures": [d.to_dict() for d in self.failures],
            "warnings": [d.to_dict() for d in self.warnings],
            "steps": self.steps,
            "lineage": self.lineage,
        }

    def to_manifest(self) -> Dict[str, Any]:
        payload = self.to_dict()
        payload["created_at"] = datetime.now(timezone.utc).isoformat()
        payload["host"] = {"name": "assetgen", "version": __version__}
        return payload


def run_stages(
    collection: SpecCollection,
    config: Dict[str, Any],
    stages: Tuple[Tuple[str, Stage], ...] = STAGES,
    on_step: Optional[Callable[[str, SpecCollection, float], None]] = None,
) -> SpecCollection:
    for name, stage in stages:
        start = time.perf_counter()
        collection = _call_stage(stage, collection, config)
        if on_step is not None:
            on_step(name, collection, start)
    return collection


def execute_pipeline(
    raw_schemas: Mapping[str, Dict[str, Any]],
    prior_specs: PriorSpecs,
    config: Dict[str, Any],
    *,
    schema_dir: Optional[Path] = None,
    logs_dir: Optional[Path] = None,
) -> Tuple[SpecCollection, RunSummary]:
    """Build, transform and reconcile specs for every raw schema.

    Non-fatal problems are accumulated into the returned summary; only an
    identity conflict propagates.
    """
    logger = get_logger("pipeline", logs_dir)
    event_logger = get_event_logger(logs_dir)
    summary = RunSummary(attempted=len(raw_schemas))
    pipeline_start = time.perf_counter()
    _log_event(event_logger, "pipeline.start", attempted=summary.attempted)

    def _on_step(step: str, collection: SpecCollection, start: float) -> None:
        elapsed = time.perf_counter() - start
        summary.steps.append({"step": step, "specs": len(collection), "elapsed_s": elapsed})
        _log_event(event_logger, "stage.end", step=step, specs=len(collection), elapsed_s=elapsed)
        logger.info("Stage %s: %d specs", step, len(collection))

    raw_schema_path = schema_dir / "raw_schema.schema.json" if schema_dir is not None else None
    start = time.perf_counter()
    collection = build_specs(raw_schemas, config, raw_schema_path)
    summary.built = len(collection)
    _on_step("build", collection, start)
    for diagnostic in collection.diagnostics:
        logger.warning("Error building %s: %s", (diagnostic.data or {}).get("spec"), diagnostic.message)

    collection = run_stages(collection, config, on_step=_on_step)

    start = time.perf_counter()
    try:
        collection = update_schema_ids(prior_specs, collection, config)
    except IdentityConflictError as exc:
        summary.status = "failed"
        summary.failures.append(exc.diagnostic)
        logger.error("Identity conflict: %s", exc)
        _log_event(
            event_logger,
            "pipeline.end",
            status=summary.status,
            elapsed_s=time.perf_counter() - pipeline_start,
            error=exc.diagnostic.to_dict(),
        )
        raise
    _on_step("identity", collection, start)

    summary.record(list(collection.diagnostics))
    summary.lineage = sorted(
        (entry.to_dict() for entry in collection.lineage),
        key=lambda item: (item["parent"], item["path"]),
    )
    for diagnostic in summary.warnings:
        logger.warning("%s: %s", diagnostic.code, diagnostic.message)
    summary.status = "success"
    _log_event(
        event_logger,
        "pipeline.end",
        status=summary.status,
        specs=len(collection),
        failures=len(summary.failures),
        warnings=len(summary.warnings),
        elapsed_s=time.perf_counter() - pipeline_start,
    )
    return collection, summary


def _call_stage(stage: Stage, collection: SpecCollection, config: Dict[str, Any]) -> SpecCollection:
    try:
        sig = inspect.signature(stage)
    except (TypeError, ValueError):
        return stage(collection)
    if "config" in sig.parameters:
        return stage(collection, config=config)
    return stage(collection)


def _log_event(event_logger, event: str, **data: Any) -> None:
    if event_logger is None:
        return
    payload = {"event": event}
    payload.update(data)
    try:
        event_logger.record(payload)
    except OSError:
        return
