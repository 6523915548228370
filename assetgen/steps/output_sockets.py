from __future__ import annotations

from typing import Dict, List

from assetgen.core.diagnostics import Diagnostic, warning
from assetgen.core.model import (
    PkgSpec,
    SocketDirection,
    SocketSpec,
    SpecCollection,
    iter_named_props,
    normalize_socket_name,
)


def generate_output_sockets(collection: SpecCollection) -> SpecCollection:
    specs: List[PkgSpec] = []
    diagnostics: List[Diagnostic] = []
    for spec in collection:
        updated, diags = output_sockets_for(spec)
        specs.append(updated)
        diagnostics.extend(diags)
    return collection.evolve(specs, diagnostics)


def output_sockets_for(spec: PkgSpec) -> tuple[PkgSpec, List[Diagnostic]]:
    """Derive one output socket per read-only or identifier scalar property.

    Properties are visited in declared order; when two paths normalize to
    the same socket name the later one wins.
    """
    diagnostics: List[Diagnostic] = []
    derived: Dict[str, SocketSpec] = {}
    for prop, segments in iter_named_props(spec.domain):
        if not prop.is_output:
            continue
        if not prop.kind.is_scalar:
            message = f"Read-only property {prop.path_str} is a {prop.kind.value}; no output socket created"
            diagnostics.append(
                warning("W-SOCKET-NONSCALAR", message, spec=spec.name, location=prop.path_str)
            )
            spec = spec.with_warning(message)
            continue
        name = normalize_socket_name(segments)
        if not name:
            continue
        previous = derived.get(name)
        if previous is not None:
            message = (
                f"Socket name {name} derived from both {previous.prop_path} and "
                f"{prop.path_str}; keeping {prop.path_str}"
            )
            diagnostics.append(
                warning("W-SOCKET-COLLAPSED", message, spec=spec.name, location=prop.path_str)
            )
            spec = spec.with_warning(message)
            del derived[name]
        derived[name] = SocketSpec(
            name=name,
            direction=SocketDirection.OUTPUT,
            annotation=prop.kind.value,
            prop_path=prop.path_str,
        )
    for socket in derived.values():
        spec = spec.with_socket(socket)
    return spec, diagnostics
