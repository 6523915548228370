from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, List

from assetgen.core.model import (
    DOMAIN,
    FuncKind,
    PkgSpec,
    PropKind,
    PropSpec,
    SocketDirection,
    SocketSpec,
    SpecCollection,
    make_func,
)

WIDGETS = {
    PropKind.STRING: "text",
    PropKind.NUMBER: "text",
    PropKind.BOOLEAN: "checkbox",
    PropKind.OBJECT: "header",
    PropKind.ARRAY: "array",
    PropKind.MAP: "map",
}

INDENT = "  "


def generate_asset_funcs(collection: SpecCollection) -> SpecCollection:
    return collection.evolve([with_asset_func(spec) for spec in collection])


def with_asset_func(spec: PkgSpec) -> PkgSpec:
    code = asset_source(spec)
    func = make_func(
        spec.name,
        spec.name,
        FuncKind.ASSET,
        code,
        display_name=spec.name,
        description=f"Asset definition for {spec.type_name}",
    )
    funcs = tuple(existing for existing in spec.funcs if existing.kind is not FuncKind.ASSET)
    return replace(spec, funcs=funcs + (func,))


def asset_source(spec: PkgSpec) -> str:
    """Render the asset definition function for ``spec``.

    Output depends only on the spec's props and sockets in their stored
    order, so unchanged specs always render byte-identical source.
    """
    out = _Writer()
    out.line("function main() {")
    out.push()
    out.line("const asset = new AssetBuilder();")
    for section in spec.root.children:
        for prop in section.children:
            out.line("")
            if section.name == DOMAIN:
                out.line("asset.addProp(")
            else:
                out.line(f"asset.addProp({_lit(section.name)},")
            out.push()
            _prop(out, prop)
            out.pop()
            out.line(");")
    for socket in spec.sockets:
        out.line("")
        if socket.direction is SocketDirection.INPUT:
            out.line("asset.addInputSocket(")
        else:
            out.line("asset.addOutputSocket(")
        out.push()
        _socket(out, socket)
        out.pop()
        out.line(");")
    out.line("")
    out.line("return asset.build();")
    out.pop()
    out.line("}")
    return out.text()


def _prop(out: "_Writer", prop: PropSpec) -> None:
    out.line("new PropBuilder()")
    out.push()
    out.line(f".setName({_lit(prop.name)})")
    out.line(f".setKind({_lit(prop.kind.value)})")
    if prop.enum:
        out.line(".setWidget(new PropWidgetDefinitionBuilder()")
        out.push()
        out.line('.setKind("comboBox")')
        for option in prop.enum:
            out.line(f".addOption({_lit(str(option))}, {_lit(option)})")
        out.line(".build())")
        out.pop()
    else:
        out.line(
            f".setWidget(new PropWidgetDefinitionBuilder().setKind({_lit(WIDGETS[prop.kind])}).build())"
        )
    if prop.documentation:
        out.line(f".setDocumentation({_lit(prop.documentation)})")
    if prop.required:
        out.line(".setValidationFormat(Joi.required())")
    if prop.read_only or prop.primary_identifier:
        out.line(".setHidden(false)")
        out.line(".setReadOnly(true)")
    if prop.default is not None:
        out.line(f".setDefaultValue({_lit(prop.default)})")
    if prop.ref:
        out.line(f".setRefersTo({_lit(prop.ref)})")
    for child in prop.children:
        out.line(".addChild(")
        out.push()
        _prop(out, child)
        out.pop()
        out.line(")")
    entry = prop.entry
    if entry is not None:
        out.line(".setEntry(")
        out.push()
        _prop(out, entry)
        out.pop()
        out.line(")")
    out.line(".build()")
    out.pop()


def _socket(out: "_Writer", socket: SocketSpec) -> None:
    out.line("new SocketDefinitionBuilder()")
    out.push()
    out.line(f".setName({_lit(socket.name)})")
    out.line(f".setArity({_lit(socket.arity)})")
    out.line(f".setConnectionAnnotation({_lit(socket.annotation)})")
    if socket.prop_path:
        out.line(f".setProp({_lit(socket.prop_path)})")
    out.line(".build()")
    out.pop()


def _lit(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


class _Writer:
    def __init__(self) -> None:
        self._lines: List[str] = []
        self._depth = 0

    def push(self) -> None:
        self._depth += 1

    def pop(self) -> None:
        self._depth -= 1

    def line(self, text: str) -> None:
        self._lines.append(INDENT * self._depth + text if text else "")

    def text(self) -> str:
        return "\n".join(self._lines) + "\n"
