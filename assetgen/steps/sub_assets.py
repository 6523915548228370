from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import Any, Deque, Dict, List, Optional, Tuple

from assetgen.core.canonical import hash_value
from assetgen.core.model import (
    DOMAIN,
    ROOT,
    Lineage,
    PkgSpec,
    PropKind,
    PropSpec,
    SocketDirection,
    SocketSpec,
    SpecCollection,
    iter_named_props,
    normalize_socket_name,
    object_prop,
)


def generate_sub_assets(collection: SpecCollection, config: Dict[str, Any]) -> SpecCollection:
    cfg = config.get("sub_assets", {}) or {}
    if not cfg.get("enabled", True):
        return collection
    extractor = _Extractor(collection, int(cfg.get("min_fields", 2)))
    return extractor.run()


def shape_hash(children: Tuple[PropSpec, ...]) -> str:
    return hash_value([child.shape() for child in children])


class _Extractor:
    def __init__(self, collection: SpecCollection, min_fields: int) -> None:
        self.collection = collection
        self.min_fields = max(1, min_fields)
        self.specs: Dict[str, PkgSpec] = {spec.name: spec for spec in collection}
        self.by_hash: Dict[str, str] = {}
        self.lineage: List[Lineage] = []
        self.queue: Deque[str] = deque(collection.names())

    def run(self) -> SpecCollection:
        while self.queue:
            name = self.queue.popleft()
            spec = self.specs[name]
            domain = self._lift_children(spec, spec.domain)
            self.specs[name] = spec.with_domain(domain)
        return self.collection.evolve(self.specs.values(), lineage=self.lineage)

    def _lift_children(self, spec: PkgSpec, prop: PropSpec) -> PropSpec:
        children = tuple(self._lift(spec, child) for child in prop.children)
        return replace(prop, children=children)

    def _lift(self, spec: PkgSpec, prop: PropSpec) -> PropSpec:
        shape = self._candidate_shape(prop)
        if shape is not None:
            target = self._sub_asset_for(spec, prop, shape)
            self.lineage.append(Lineage(parent=spec.name, child=target, path=prop.path_str))
            return _reference(prop, target)
        if prop.kind is PropKind.OBJECT:
            return self._lift_children(spec, prop)
        entry = prop.entry
        if entry is not None and entry.kind is PropKind.OBJECT:
            lifted = self._lift_children(spec, entry)
            if prop.kind is PropKind.ARRAY:
                return replace(prop, element=lifted)
            return replace(prop, value=lifted)
        return prop

    def _candidate_shape(self, prop: PropSpec) -> Optional[Tuple[PropSpec, ...]]:
        if prop.read_only or prop.ref:
            return None
        if prop.kind is PropKind.OBJECT:
            # output sockets already point into this object
            if any(child.is_output for child, _ in iter_named_props(prop)):
                return None
            node = prop
        elif prop.kind is PropKind.ARRAY and prop.element is not None and prop.element.kind is PropKind.OBJECT:
            node = prop.element
        else:
            return None
        if len(node.children) < self.min_fields:
            return None
        return node.children

    def _sub_asset_for(self, spec: PkgSpec, prop: PropSpec, shape: Tuple[PropSpec, ...]) -> str:
        digest = shape_hash(shape)
        existing = self.by_hash.get(digest)
        if existing is not None:
            return existing
        name = self._unique_name(spec.name + "::" + "::".join(prop.path[2:]))
        domain = object_prop(DOMAIN, (ROOT,), shape)
        self.specs[name] = PkgSpec(
            name=name,
            type_name=name,
            variant=spec.variant,
            root=object_prop(ROOT, (), [domain]),
            category=spec.category,
            color=spec.color,
            description=prop.documentation,
            parent=spec.name,
            sockets=(
                SocketSpec(
                    name=normalize_socket_name([prop.name]) or "Value",
                    direction=SocketDirection.OUTPUT,
                    annotation=name,
                ),
            ),
        )
        self.by_hash[digest] = name
        self.queue.append(name)
        return name

    def _unique_name(self, base: str) -> str:
        name = base
        counter = 2
        while name in self.specs:
            name = f"{base}{counter}"
            counter += 1
        return name


def _reference(prop: PropSpec, target: str) -> PropSpec:
    if prop.kind is PropKind.ARRAY and prop.element is not None:
        marker = PropSpec(name=prop.element.name, kind=PropKind.STRING, path=prop.element.path, ref=target)
        return replace(prop, element=marker)
    return PropSpec(
        name=prop.name,
        kind=PropKind.STRING,
        path=prop.path,
        required=prop.required,
        documentation=prop.documentation,
        ref=target,
    )
