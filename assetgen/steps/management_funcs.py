from __future__ import annotations

from assetgen.core.model import FuncKind, PkgSpec, SpecCollection, make_func
from assetgen.core.templates import render

DEFAULT_MANAGEMENT = (
    ("import", "Import from AWS"),
    ("discover", "Discover on AWS"),
)


def generate_default_management_funcs(collection: SpecCollection) -> SpecCollection:
    return collection.evolve([with_management_funcs(spec) for spec in collection])


def with_management_funcs(spec: PkgSpec) -> PkgSpec:
    if spec.is_sub_asset:
        return spec
    for operation, display_name in DEFAULT_MANAGEMENT:
        spec = spec.with_func(
            make_func(
                spec.name,
                display_name,
                FuncKind.MANAGEMENT,
                render(f"management.{operation}", type_name=spec.type_name),
                display_name=display_name,
                description=f"{display_name}: {spec.type_name}",
            )
        )
    return spec
