from __future__ import annotations

from assetgen.core.model import FuncKind, PkgSpec, SpecCollection, make_func
from assetgen.core.templates import render

DEFAULT_LEAVES = (
    ("qualification", "Validate Create Payload"),
    ("codeGeneration", "Cloud Control Create Payload"),
)


def generate_default_leaf_funcs(collection: SpecCollection) -> SpecCollection:
    return collection.evolve([with_leaf_funcs(spec) for spec in collection])


def with_leaf_funcs(spec: PkgSpec) -> PkgSpec:
    if spec.is_sub_asset:
        return spec
    for leaf_kind, display_name in DEFAULT_LEAVES:
        spec = spec.with_func(
            make_func(
                spec.name,
                display_name,
                FuncKind.LEAF,
                render(f"leaf.{leaf_kind}", type_name=spec.type_name),
                display_name=display_name,
                leaf_kind=leaf_kind,
            )
        )
    return spec
