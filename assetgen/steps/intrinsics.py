from __future__ import annotations

from assetgen.core.model import FuncKind, FuncSpec, PkgSpec, SpecCollection


def _intrinsic(name: str) -> FuncSpec:
    return FuncSpec(name=name, kind=FuncKind.INTRINSIC, unique_id=name)


# Shared by every spec and bound by unique id only.
INTRINSIC_FUNCS = (
    _intrinsic("si:identity"),
    _intrinsic("si:unset"),
    _intrinsic("si:setString"),
    _intrinsic("si:setNumber"),
    _intrinsic("si:setBoolean"),
    _intrinsic("si:setObject"),
    _intrinsic("si:setArray"),
    _intrinsic("si:setMap"),
)


def generate_intrinsic_funcs(collection: SpecCollection) -> SpecCollection:
    return collection.evolve([with_intrinsics(spec) for spec in collection])


def with_intrinsics(spec: PkgSpec) -> PkgSpec:
    for func in INTRINSIC_FUNCS:
        spec = spec.with_func(func)
    return spec
