from __future__ import annotations

from assetgen.core.model import FuncKind, PkgSpec, SpecCollection, make_func
from assetgen.core.templates import render

DEFAULT_ACTIONS = (
    ("create", "Create Asset"),
    ("refresh", "Refresh Asset"),
    ("update", "Update Asset"),
    ("delete", "Delete Asset"),
)


def generate_default_action_funcs(collection: SpecCollection) -> SpecCollection:
    return collection.evolve([with_action_funcs(spec) for spec in collection])


def with_action_funcs(spec: PkgSpec) -> PkgSpec:
    if spec.is_sub_asset:
        return spec
    for action_kind, display_name in DEFAULT_ACTIONS:
        func = make_func(
            spec.name,
            display_name,
            FuncKind.ACTION,
            render(f"action.{action_kind}", type_name=spec.type_name),
            display_name=display_name,
            description=f"{display_name} for {spec.type_name}",
            action_kind=action_kind,
        )
        spec = spec.with_func(func)
    return spec
