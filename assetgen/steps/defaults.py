from __future__ import annotations

from dataclasses import replace

from assetgen.core.model import (
    ROOT,
    PkgSpec,
    PropKind,
    PropSpec,
    SocketDirection,
    SocketSpec,
    SpecCollection,
    entry_name,
)

EXTRA = "extra"
EXTRA_PATH = (ROOT, EXTRA)
REGION_PATH = EXTRA_PATH + ("Region",)
METADATA_PATH = EXTRA_PATH + ("Metadata",)

DEFAULT_PROPS = (
    PropSpec(
        name=EXTRA,
        kind=PropKind.OBJECT,
        path=EXTRA_PATH,
        children=(
            PropSpec(
                name="Region",
                kind=PropKind.STRING,
                path=REGION_PATH,
                documentation="The region the resource is managed in.",
            ),
            PropSpec(
                name="Metadata",
                kind=PropKind.MAP,
                path=METADATA_PATH,
                value=PropSpec(
                    name=entry_name("Metadata"),
                    kind=PropKind.STRING,
                    path=METADATA_PATH + (entry_name("Metadata"),),
                ),
                documentation="Free-form key/value metadata.",
            ),
        ),
    ),
)

DEFAULT_SOCKETS = (
    SocketSpec(
        name="Credential",
        direction=SocketDirection.INPUT,
        annotation="credential",
    ),
    SocketSpec(
        name="Region",
        direction=SocketDirection.INPUT,
        annotation="string",
        prop_path="/" + "/".join(REGION_PATH),
    ),
)


def add_default_props_and_sockets(collection: SpecCollection) -> SpecCollection:
    return collection.evolve([with_defaults(spec) for spec in collection])


def with_defaults(spec: PkgSpec) -> PkgSpec:
    if spec.is_sub_asset:
        return spec
    root = spec.root
    for prop in DEFAULT_PROPS:
        root = root.with_child(prop)
    spec = replace(spec, root=root)
    for socket in DEFAULT_SOCKETS:
        spec = spec.with_socket(socket)
    return spec
