from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import DefaultDict, Iterator, List, Optional, Tuple

from assetgen.core.diagnostics import Diagnostic, warning
from assetgen.core.model import (
    PkgSpec,
    PropKind,
    PropSpec,
    SocketDirection,
    SocketSpec,
    SpecCollection,
    normalize_socket_name,
    socket_key,
)


@dataclass(frozen=True)
class SocketNeed:
    name: str
    annotation: str
    prop_path: str
    arity: str = "one"
    # Reference needs match on the target spec's type alone
    by_reference: bool = False


class OutputIndex:
    def __init__(self, collection: SpecCollection) -> None:
        self._by_key: DefaultDict[Tuple[str, str], List[Tuple[str, SocketSpec]]] = defaultdict(list)
        self._by_annotation: DefaultDict[str, List[Tuple[str, SocketSpec]]] = defaultdict(list)
        for spec in collection:
            for socket in spec.sockets_for(SocketDirection.OUTPUT):
                self._by_key[(socket_key(socket.name), socket.annotation)].append((spec.name, socket))
                self._by_annotation[socket.annotation].append((spec.name, socket))

    def candidates(self, need: SocketNeed, *, exclude: str) -> List[Tuple[str, SocketSpec]]:
        if need.by_reference:
            matches = self._by_annotation.get(need.annotation, [])
        else:
            matches = self._by_key.get((socket_key(need.name), need.annotation), [])
        return [(owner, socket) for owner, socket in matches if owner != exclude]


def create_input_sockets(collection: SpecCollection) -> SpecCollection:
    index = OutputIndex(collection)
    specs: List[PkgSpec] = []
    diagnostics: List[Diagnostic] = []
    for spec in collection:
        for need in iter_needs(spec):
            if spec.socket(need.name, SocketDirection.INPUT) is not None:
                continue
            candidates = index.candidates(need, exclude=spec.name)
            if not candidates:
                continue
            if len(candidates) > 1:
                owners = ", ".join(f"{owner}.{socket.name}" for owner, socket in candidates)
                message = f"Input {need.name} ({need.annotation}) is ambiguous between {owners}; left unconnected"
                diagnostics.append(
                    warning("W-SOCKET-AMBIGUOUS", message, spec=spec.name, location=need.prop_path)
                )
                spec = spec.with_warning(message)
                continue
            owner, output = candidates[0]
            spec = spec.with_socket(
                SocketSpec(
                    name=need.name,
                    direction=SocketDirection.INPUT,
                    annotation=output.annotation,
                    arity=need.arity,
                    prop_path=need.prop_path,
                    connects_to=(owner, output.name),
                )
            )
        specs.append(spec)
    return collection.evolve(specs, diagnostics)


def iter_needs(spec: PkgSpec) -> Iterator[SocketNeed]:
    """Yield the values ``spec`` could take from another spec's outputs.

    Reference markers left by sub-asset extraction always need their target;
    writable scalars need a same-named, same-typed output.
    """
    for child in spec.domain.children:
        yield from _needs(child, (child.name,), many=False)


def _needs(prop: PropSpec, segments: Tuple[str, ...], *, many: bool) -> Iterator[SocketNeed]:
    name = normalize_socket_name(segments)
    if not name:
        return
    if prop.ref:
        yield _reference_need(name, prop.ref, prop.path_str, many)
        return
    if prop.kind is PropKind.OBJECT:
        for child in prop.children:
            yield from _needs(child, segments + (child.name,), many=many)
        return
    entry: Optional[PropSpec] = prop.entry
    if prop.kind is PropKind.ARRAY and entry is not None:
        if entry.ref:
            yield _reference_need(name, entry.ref, prop.path_str, True)
        elif entry.kind is PropKind.OBJECT:
            for child in entry.children:
                yield from _needs(child, segments + (child.name,), many=True)
        return
    if prop.kind.is_scalar and not prop.is_output and not many:
        yield SocketNeed(name=name, annotation=prop.kind.value, prop_path=prop.path_str)


def _reference_need(name: str, target: str, prop_path: str, many: bool) -> SocketNeed:
    return SocketNeed(
        name=name,
        annotation=target,
        prop_path=prop_path,
        arity="many" if many else "one",
        by_reference=True,
    )
