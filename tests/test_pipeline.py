from __future__ import annotations

from dataclasses import replace
import json
import sys
from pathlib import Path
import tempfile

import pytest

from assetgen.api import generate, generate_specs
from assetgen.cli import main
from assetgen.core import emit as emit_module
from assetgen.core.config import load_config, normalize_config
from assetgen.core.diagnostics import AssetGenError
from assetgen.core.emit import emit_specs, load_prior_specs, spec_filename
from assetgen.core.model import FuncKind, PropKind, SocketDirection
from assetgen.core.pipeline import STAGES
from assetgen.core.raw_schema import load_raw_schemas

ROOT = Path(__file__).resolve().parents[1]
SCHEMAS = ROOT / "examples" / "schemas"

QUEUE = "Example::Queue::Resource"
TOPIC = "Example::Topic::Resource"
TAGS = "Example::Queue::Resource::Tags"
REDRIVE = "Example::Queue::Resource::RedrivePolicy"


def test_pipeline_runs():
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir) / "specs"
        result = generate(SCHEMAS, out_dir, logs_dir=Path(tmpdir) / "logs")

        summary = result.summary
        assert summary.status == "success"
        assert summary.attempted == 2
        assert summary.built == 2
        assert summary.emitted == 4
        assert summary.failures == []
        assert [step["step"] for step in summary.steps] == (
            ["build"] + [name for name, _ in STAGES] + ["identity"]
        )
        assert sorted(path.name for path in out_dir.glob("*.json")) == sorted(
            spec_filename(name) for name in (QUEUE, REDRIVE, TAGS, TOPIC)
        )
        assert summary.lineage == [
            {"parent": QUEUE, "child": REDRIVE, "path": "/root/domain/RedrivePolicy"},
            {"parent": QUEUE, "child": TAGS, "path": "/root/domain/Tags"},
            {"parent": TOPIC, "child": TAGS, "path": "/root/domain/Tags"},
        ]
        assert summary.to_dict()["lineage"] == summary.lineage

        events = [
            json.loads(line)["event"]
            for line in (Path(tmpdir) / "logs" / "events.jsonl").read_text(encoding="utf-8").splitlines()
        ]
        assert events[0] == "pipeline.start"
        assert events[-2:] == ["pipeline.end", "emit.end"]
        assert (Path(tmpdir) / "logs" / "pipeline.log").exists()


def test_queue_scenario_wiring():
    with tempfile.TemporaryDirectory() as tmpdir:
        specs = generate(SCHEMAS, Path(tmpdir)).specs

    queue = specs.get(QUEUE)
    outputs = {s.name: s for s in queue.sockets_for(SocketDirection.OUTPUT)}
    assert outputs["QueueArn"].annotation == "string"
    assert outputs["QueueArn"].prop_path == "/root/domain/QueueArn"
    assert "QueueName" in outputs

    inputs = {s.name: s for s in queue.sockets_for(SocketDirection.INPUT)}
    assert inputs["RedrivePolicy"].connects_to == (REDRIVE, "RedrivePolicy")
    assert inputs["RedrivePolicy"].arity == "one"
    assert inputs["Tags"].connects_to == (TAGS, "Tags")
    assert inputs["Tags"].arity == "many"
    assert {"Credential", "Region"} <= set(inputs)

    topic = specs.get(TOPIC)
    topic_inputs = {s.name: s for s in topic.sockets_for(SocketDirection.INPUT)}
    assert topic_inputs["QueueArn"].connects_to == (QUEUE, "QueueArn")
    assert topic_inputs["Tags"].connects_to == (TAGS, "Tags")

    redrive = specs.get(REDRIVE)
    assert redrive.parent == QUEUE
    assert [f.kind for f in redrive.funcs].count(FuncKind.ASSET) == 1
    assert {f.kind for f in redrive.funcs} == {FuncKind.INTRINSIC, FuncKind.ASSET}
    assert len(queue.funcs_of(FuncKind.ACTION)) == 4


def test_every_connection_points_at_a_real_output():
    with tempfile.TemporaryDirectory() as tmpdir:
        specs = generate(SCHEMAS, Path(tmpdir)).specs

    for spec in specs:
        for socket in spec.sockets_for(SocketDirection.INPUT):
            if socket.connects_to is None:
                continue
            owner, name = socket.connects_to
            target = specs.get(owner)
            assert target is not None
            output = target.socket(name, SocketDirection.OUTPUT)
            assert output is not None
            assert output.annotation == socket.annotation


def test_regeneration_is_byte_identical():
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir)
        first = generate(SCHEMAS, out_dir)
        before = {path.name: path.read_bytes() for path in first.written}

        second = generate(SCHEMAS, out_dir)
        after = {path.name: path.read_bytes() for path in second.written}

        assert before == after
        assert [s.schema_id for s in first.specs] == [s.schema_id for s in second.specs]


def test_ids_survive_parallel_rebuild():
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir)
        first = generate(SCHEMAS, out_dir)
        config = load_config(ROOT / "examples" / "assetgen.yaml")
        second = generate(SCHEMAS, out_dir, normalize_config(config))

        assert [s.to_dict() for s in first.specs] == [s.to_dict() for s in second.specs]


def test_emitted_specs_load_back():
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir)
        result = generate(SCHEMAS, out_dir)
        prior = load_prior_specs(out_dir, ROOT / "assetgen" / "schemas" / "pkg_spec.schema.json")

        assert sorted(prior) == result.specs.names()
        assert prior[QUEUE] == result.specs.get(QUEUE)


def test_unreadable_prior_spec_aborts():
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir)
        (out_dir / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(AssetGenError) as excinfo:
            generate(SCHEMAS, out_dir)
        assert excinfo.value.diagnostic.code == "E-PRIOR-INVALID"
        assert (out_dir / "broken.json").exists()


def test_failed_write_is_counted(monkeypatch):
    real = emit_module.pretty_json

    def _flaky(document):
        if document["name"] == TOPIC:
            raise ValueError("disk full")
        return real(document)

    monkeypatch.setattr(emit_module, "pretty_json", _flaky)
    with tempfile.TemporaryDirectory() as tmpdir:
        result = generate(SCHEMAS, Path(tmpdir))

        assert result.summary.emitted == 3
        assert [d.code for d in result.summary.failures] == ["E-EMIT"]
        assert not (Path(tmpdir) / spec_filename(TOPIC)).exists()


def test_failed_write_keeps_previous_document(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir)
        generate(SCHEMAS, out_dir)
        topic_path = out_dir / spec_filename(TOPIC)
        document = json.loads(topic_path.read_text(encoding="utf-8"))
        document["schema_id"] = "carried-id"
        topic_path.write_text(json.dumps(document), encoding="utf-8")

        real = emit_module.pretty_json

        def _flaky(payload):
            if payload["name"] == TOPIC:
                raise ValueError("disk full")
            return real(payload)

        monkeypatch.setattr(emit_module, "pretty_json", _flaky)
        result = generate(SCHEMAS, out_dir)
        assert [d.code for d in result.summary.failures] == ["E-EMIT"]
        assert json.loads(topic_path.read_text(encoding="utf-8"))["schema_id"] == "carried-id"
        assert not list(out_dir.glob("*.tmp"))

        monkeypatch.setattr(emit_module, "pretty_json", real)
        again = generate(SCHEMAS, out_dir)
        assert again.specs.get(TOPIC).schema_id == "carried-id"
        assert again.summary.failures == []


def test_documents_for_vanished_types_are_removed():
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir)
        generate(SCHEMAS, out_dir)
        gone = "Example::Gone::Resource"
        document = json.loads((out_dir / spec_filename(TOPIC)).read_text(encoding="utf-8"))
        document.update(name=gone, type_name=gone, schema_id="gone-id")
        (out_dir / spec_filename(gone)).write_text(json.dumps(document), encoding="utf-8")

        result = generate(SCHEMAS, out_dir)

        assert gone not in result.specs.names()
        assert not (out_dir / spec_filename(gone)).exists()
        assert sorted(path.name for path in out_dir.glob("*.json")) == sorted(
            path.name for path in result.written
        )


def test_colliding_filenames_are_reported():
    specs, _ = generate_specs(
        {"Example::A::B": {"typeName": "Example::A::B", "properties": {"Name": {"type": "string"}}}}
    )
    original = specs.get("Example::A::B")
    twin = replace(original, name="Example::A::B c", type_name="Example::A::B c", schema_id="twin-id")
    other = replace(original, name="Example::A::B_c", type_name="Example::A::B_c", schema_id="other-id")
    assert spec_filename(twin.name) == spec_filename(other.name)

    with tempfile.TemporaryDirectory() as tmpdir:
        written, diagnostics = emit_specs([twin, other], Path(tmpdir))

        assert [path.name for path in written] == [spec_filename(twin.name)]
        [failure] = diagnostics.items
        assert failure.code == "E-EMIT"
        assert failure.data == {"spec": "Example::A::B_c"}
        document = json.loads(written[0].read_text(encoding="utf-8"))
        assert document["name"] == "Example::A::B c"


def test_nested_output_sockets_keep_their_props():
    specs, _ = generate_specs(
        {
            "Example::Db::Cluster": {
                "typeName": "Example::Db::Cluster",
                "properties": {
                    "Endpoint": {
                        "type": "object",
                        "properties": {"Address": {"type": "string"}, "Port": {"type": "integer"}},
                    },
                    "Settings": {
                        "type": "object",
                        "properties": {"Mode": {"type": "string"}, "Size": {"type": "integer"}},
                    },
                },
                "readOnlyProperties": ["/properties/Endpoint/Address"],
            }
        }
    )

    cluster = specs.get("Example::Db::Cluster")
    assert cluster.domain.child("Endpoint").kind is PropKind.OBJECT
    assert cluster.domain.child("Settings").ref == "Example::Db::Cluster::Settings"
    address = cluster.socket("EndpointAddress", SocketDirection.OUTPUT)
    assert address.prop_path == "/root/domain/Endpoint/Address"
    _assert_socket_paths_resolve(specs)


def test_example_socket_paths_resolve():
    specs, _ = generate_specs(load_raw_schemas(SCHEMAS))
    _assert_socket_paths_resolve(specs)


def _assert_socket_paths_resolve(specs):
    for spec in specs:
        paths = {prop.path_str for prop in spec.root.walk()}
        for socket in spec.sockets:
            if socket.prop_path is not None:
                assert socket.prop_path in paths, (spec.name, socket.name)


def test_emitted_documents_match_schema():
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir)
        specs = generate(SCHEMAS, out_dir).specs
        written, diagnostics = emit_specs(
            specs,
            out_dir / "again",
            schema_path=ROOT / "assetgen" / "schemas" / "pkg_spec.schema.json",
        )
        assert len(written) == len(specs)
        assert not diagnostics.has_errors()


def test_config_file_is_merged_over_defaults():
    config = normalize_config(load_config(ROOT / "examples" / "assetgen.yaml"))
    assert config["builder"] == {"max_depth": 10, "workers": 4}
    assert config["identity"] == {"fuzzy": True, "fuzzy_threshold": 0.85}
    assert config["emit"]["clean"] is True


def test_cli_generate_and_validate(monkeypatch, capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        out_dir = Path(tmpdir) / "specs"
        manifest = Path(tmpdir) / "manifest.json"
        monkeypatch.setattr(
            sys,
            "argv",
            ["assetgen", "generate", "--schemas", str(SCHEMAS), "--out", str(out_dir), "--manifest", str(manifest)],
        )
        main()
        assert "built 2 out of 2" in capsys.readouterr().out

        payload = json.loads(manifest.read_text(encoding="utf-8"))
        assert payload["status"] == "success"
        assert len(payload["artifacts"]) == 4
        assert {"parent": TOPIC, "child": TAGS, "path": "/root/domain/Tags"} in payload["lineage"]

        monkeypatch.setattr(sys, "argv", ["assetgen", "show", "--spec", str(out_dir / spec_filename(QUEUE))])
        main()
        shown = json.loads(capsys.readouterr().out)
        assert shown["name"] == QUEUE

    monkeypatch.setattr(sys, "argv", ["assetgen", "validate", "--schemas", str(SCHEMAS)])
    main()
    assert json.loads(capsys.readouterr().out) == {"status": "ok"}
