from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from assetgen.core.config import normalize_config
from assetgen.core.model import FuncKind, PropKind, SocketDirection, SpecCollection
from assetgen.core.raw_schema import load_raw_schemas
from assetgen.steps.action_funcs import generate_default_action_funcs
from assetgen.steps.asset_funcs import asset_source, generate_asset_funcs
from assetgen.steps.build import build_specs
from assetgen.steps.defaults import add_default_props_and_sockets, with_defaults
from assetgen.steps.intrinsics import INTRINSIC_FUNCS, with_intrinsics
from assetgen.steps.leaf_funcs import generate_default_leaf_funcs
from assetgen.steps.management_funcs import generate_default_management_funcs
from assetgen.steps.sub_assets import generate_sub_assets

ROOT = Path(__file__).resolve().parents[1]

QUEUE = "Example::Queue::Resource"
TOPIC = "Example::Topic::Resource"
TAGS = "Example::Queue::Resource::Tags"
REDRIVE = "Example::Queue::Resource::RedrivePolicy"


def _collection(config=None):
    records = load_raw_schemas(ROOT / "examples" / "schemas")
    return build_specs(records, normalize_config(config))


def test_defaults_are_added_once():
    spec = _collection().get(QUEUE)
    once = with_defaults(spec)
    assert with_defaults(once) == once

    extra = once.root.child("extra")
    assert [child.name for child in extra.children] == ["Region", "Metadata"]
    assert extra.child("Metadata").kind is PropKind.MAP
    inputs = once.sockets_for(SocketDirection.INPUT)
    assert [(s.name, s.annotation) for s in inputs] == [("Credential", "credential"), ("Region", "string")]
    assert inputs[1].prop_path == "/root/extra/Region"


def test_function_generators_fill_every_slot():
    collection = add_default_props_and_sockets(_collection())
    collection = generate_default_action_funcs(collection)
    collection = generate_default_leaf_funcs(collection)
    collection = generate_default_management_funcs(collection)

    spec = collection.get(QUEUE)
    assert [f.action_kind for f in spec.funcs_of(FuncKind.ACTION)] == ["create", "refresh", "update", "delete"]
    assert [f.leaf_kind for f in spec.funcs_of(FuncKind.LEAF)] == ["qualification", "codeGeneration"]
    assert len(spec.funcs_of(FuncKind.MANAGEMENT)) == 2
    for func in spec.funcs:
        assert func.generated
        assert QUEUE in func.code
        assert "function main" in func.code

    again = generate_default_management_funcs(
        generate_default_leaf_funcs(generate_default_action_funcs(collection))
    )
    assert again == collection


def test_handlers_read_region_from_extra():
    collection = add_default_props_and_sockets(_collection())
    collection = generate_default_action_funcs(collection)
    collection = generate_default_leaf_funcs(collection)
    collection = generate_default_management_funcs(collection)

    spec = collection.get(QUEUE)
    assert "/root/extra/Region" in {prop.path_str for prop in spec.root.walk()}
    for func in spec.funcs_of(FuncKind.ACTION) + spec.funcs_of(FuncKind.MANAGEMENT):
        assert "properties.extra?.Region" in func.code
        assert "domain?.extra" not in func.code
    [code_gen] = [f for f in spec.funcs_of(FuncKind.LEAF) if f.leaf_kind == "codeGeneration"]
    assert "delete desired.extra" not in code_gen.code


def test_generated_func_ids_are_scoped_to_spec():
    collection = generate_default_action_funcs(_collection())
    queue_ids = {f.unique_id for f in collection.get(QUEUE).funcs}
    topic_ids = {f.unique_id for f in collection.get(TOPIC).funcs}
    assert len(queue_ids) == 4
    assert not queue_ids & topic_ids


def test_shared_shapes_become_one_sub_asset():
    collection = generate_sub_assets(_collection(), normalize_config())

    assert collection.names() == [QUEUE, REDRIVE, TAGS, TOPIC]
    tags = collection.get(TAGS)
    assert tags.parent == QUEUE
    assert tags.is_sub_asset
    assert [child.name for child in tags.domain.children] == ["Key", "Value"]
    assert [(s.name, s.direction, s.annotation) for s in tags.sockets] == [
        ("Tags", SocketDirection.OUTPUT, TAGS)
    ]

    queue_tags = collection.get(QUEUE).domain.child("Tags")
    topic_tags = collection.get(TOPIC).domain.child("Tags")
    assert queue_tags.kind is PropKind.ARRAY
    assert queue_tags.element.ref == TAGS
    assert topic_tags.element.ref == TAGS

    redrive = collection.get(QUEUE).domain.child("RedrivePolicy")
    assert redrive.kind is PropKind.STRING
    assert redrive.ref == REDRIVE

    lineage = sorted((entry.parent, entry.child) for entry in collection.lineage)
    assert lineage == [(QUEUE, REDRIVE), (QUEUE, TAGS), (TOPIC, TAGS)]


def test_sub_asset_threshold():
    config = normalize_config({"sub_assets": {"min_fields": 3}})
    collection = generate_sub_assets(_collection(), config)
    assert collection.names() == [QUEUE, TOPIC]
    assert collection.get(QUEUE).domain.child("RedrivePolicy").kind is PropKind.OBJECT

    disabled = generate_sub_assets(_collection(), normalize_config({"sub_assets": {"enabled": False}}))
    assert disabled.names() == [QUEUE, TOPIC]


def test_sub_assets_skip_defaults_and_generated_funcs():
    collection = generate_sub_assets(_collection(), normalize_config())
    collection = add_default_props_and_sockets(collection)
    collection = generate_default_action_funcs(collection)

    tags = collection.get(TAGS)
    assert tags.root.child("extra") is None
    assert tags.funcs == ()
    assert tags.sockets_for(SocketDirection.INPUT) == []


def test_intrinsics_bind_once_in_any_order():
    spec = _collection().get(QUEUE)
    partial = spec.with_func(INTRINSIC_FUNCS[2])
    bound = with_intrinsics(partial)

    assert with_intrinsics(bound) == bound
    ids = [f.unique_id for f in bound.funcs]
    assert sorted(ids) == sorted(f.unique_id for f in INTRINSIC_FUNCS)
    assert len(ids) == len(set(ids))
    assert bound.funcs[0].to_dict() == {
        "name": "si:setString",
        "kind": "intrinsic",
        "unique_id": "si:setString",
        "generated": True,
    }


def test_asset_func_is_deterministic_and_replaced():
    collection = generate_sub_assets(add_default_props_and_sockets(_collection()), normalize_config())
    collection = generate_asset_funcs(collection)
    spec = collection.get(QUEUE)

    assets = spec.funcs_of(FuncKind.ASSET)
    assert len(assets) == 1
    assert assets[0].code == asset_source(spec)
    assert f'.setRefersTo("{REDRIVE}")' in assets[0].code
    assert '.setName("QueueName")' in assets[0].code
    assert 'asset.addProp("extra",' in assets[0].code

    again = generate_asset_funcs(collection)
    assert again.get(QUEUE).funcs_of(FuncKind.ASSET) == assets

    renamed = replace(spec, description="changed")
    assert asset_source(renamed) == asset_source(spec)


def test_asset_source_reflects_sockets():
    collection = add_default_props_and_sockets(_collection())
    spec = collection.get(TOPIC)
    source = asset_source(spec)
    assert source.count("asset.addInputSocket(") == 2
    assert '.setConnectionAnnotation("credential")' in source
    assert source.endswith("return asset.build();\n}\n")
    assert SpecCollection.of([spec]).get(TOPIC) == spec
