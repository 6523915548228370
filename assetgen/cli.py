from __future__ import annotations

import argparse
import json
from pathlib import Path

from .api import default_schema_dir, generate
from .core.canonical import pretty_json
from .core.config import load_config, normalize_config
from .core.diagnostics import AssetGenError, Diagnostics
from .core.emit import hash_file, render_spec
from .core.model import PkgSpec
from .core.raw_schema import load_raw_schemas, validate_raw_schema


def main() -> None:
    parser = argparse.ArgumentParser(prog="assetgen")
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate")
    validate.add_argument("--schemas", required=True)

    gen = sub.add_parser("generate")
    gen.add_argument("--schemas", required=True)
    gen.add_argument("--out", required=True)
    gen.add_argument("-c", "--config", required=False)
    gen.add_argument("--logs", required=False)
    gen.add_argument("--manifest", required=False)

    show = sub.add_parser("show")
    show.add_argument("--spec", required=True)

    args = parser.parse_args()

    if args.command == "validate":
        _validate(Path(args.schemas))
        return

    if args.command == "show":
        _show(Path(args.spec))
        return

    config = load_config(Path(args.config)) if args.config else {}
    try:
        result = generate(
            Path(args.schemas),
            Path(args.out),
            normalize_config(config),
            logs_dir=Path(args.logs) if args.logs else None,
        )
    except AssetGenError as exc:
        print(json.dumps(exc.diagnostic.to_dict(), indent=2, sort_keys=True))
        raise SystemExit(1)

    summary = result.summary
    if args.manifest:
        manifest = summary.to_manifest()
        manifest["artifacts"] = [
            {"path": path.name, "content_hash": hash_file(path)} for path in result.written
        ]
        Path(args.manifest).write_text(pretty_json(manifest), encoding="utf-8")
    for failure in summary.failures:
        print(f"Error: {(failure.data or {}).get('spec')}: {failure.message}")
    print(f"built {summary.built} out of {summary.attempted}")
    print(f"wrote {summary.emitted} specs to {result.out_dir}")


def _validate(path: Path) -> None:
    schema_path = default_schema_dir() / "raw_schema.schema.json"
    diagnostics = Diagnostics()
    for record in load_raw_schemas(path).values():
        diagnostics.extend(validate_raw_schema(record, schema_path))
    if diagnostics.has_errors():
        print(json.dumps(diagnostics.to_list(), indent=2, sort_keys=True))
        raise SystemExit(1)
    print(json.dumps({"status": "ok"}))


def _show(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"{path} not found")
    spec = PkgSpec.from_dict(json.loads(path.read_text(encoding="utf-8")))
    print(render_spec(spec), end="")


if __name__ == "__main__":
    main()
