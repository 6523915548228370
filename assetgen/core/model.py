from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .canonical import hash_text
from .diagnostics import Diagnostic

ROOT = "root"
DOMAIN = "domain"
DOMAIN_PATH: Tuple[str, ...] = (ROOT, DOMAIN)

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")


class PropKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    MAP = "map"

    @property
    def is_scalar(self) -> bool:
        return self in (PropKind.STRING, PropKind.NUMBER, PropKind.BOOLEAN)


class SocketDirection(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


class FuncKind(str, Enum):
    ACTION = "action"
    LEAF = "leaf"
    MANAGEMENT = "management"
    ASSET = "asset"
    INTRINSIC = "intrinsic"


@dataclass(frozen=True)
class PropSpec:
    """A typed node of a spec's property tree.

    ``children`` is only populated for objects; arrays carry their entry in
    ``element`` and maps in ``value``. ``ref`` marks a property that was
    replaced by a reference to a sub-asset spec.
    """

    name: str
    kind: PropKind
    path: Tuple[str, ...]
    children: Tuple["PropSpec", ...] = ()
    element: Optional["PropSpec"] = None
    value: Optional["PropSpec"] = None
    required: bool = False
    read_only: bool = False
    primary_identifier: bool = False
    documentation: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None
    default: Any = None
    ref: Optional[str] = None

    @property
    def path_str(self) -> str:
        return "/" + "/".join(self.path)

    @property
    def entry(self) -> Optional["PropSpec"]:
        if self.kind is PropKind.ARRAY:
            return self.element
        if self.kind is PropKind.MAP:
            return self.value
        return None

    @property
    def is_output(self) -> bool:
        return self.read_only or self.primary_identifier

    def child(self, name: str) -> Optional["PropSpec"]:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def walk(self) -> Iterator["PropSpec"]:
        yield self
        for child in self.children:
            yield from child.walk()
        entry = self.entry
        if entry is not None:
            yield from entry.walk()

    def with_child(self, prop: "PropSpec") -> "PropSpec":
        children = list(self.children)
        for idx, child in enumerate(children):
            if child.name == prop.name:
                children[idx] = prop
                return replace(self, children=tuple(children))
        children.append(prop)
        return replace(self, children=tuple(children))

    def rebased(self, parent_path: Tuple[str, ...]) -> "PropSpec":
        path = parent_path + (self.name,)
        return replace(
            self,
            path=path,
            children=tuple(child.rebased(path) for child in self.children),
            element=self.element.rebased(path) if self.element is not None else None,
            value=self.value.rebased(path) if self.value is not None else None,
        )

    def shape(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.children:
            payload["children"] = [child.shape() for child in self.children]
        if self.entry is not None:
            payload["entry"] = self.entry.shape()
        if self.ref:
            payload["ref"] = self.ref
        return payload

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
            "path": self.path_str,
        }
        if self.kind is PropKind.OBJECT:
            payload["children"] = [child.to_dict() for child in self.children]
        if self.entry is not None:
            payload["entry"] = self.entry.to_dict()
        if self.required:
            payload["required"] = True
        if self.read_only:
            payload["read_only"] = True
        if self.primary_identifier:
            payload["primary_identifier"] = True
        if self.documentation:
            payload["documentation"] = self.documentation
        if self.enum is not None:
            payload["enum"] = list(self.enum)
        if self.default is not None:
            payload["default"] = self.default
        if self.ref:
            payload["ref"] = self.ref
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PropSpec":
        kind = PropKind(data["kind"])
        entry = data.get("entry")
        enum = data.get("enum")
        return cls(
            name=data["name"],
            kind=kind,
            path=tuple(segment for segment in str(data["path"]).split("/") if segment),
            children=tuple(cls.from_dict(child) for child in data.get("children", []) or []),
            element=cls.from_dict(entry) if entry is not None and kind is PropKind.ARRAY else None,
            value=cls.from_dict(entry) if entry is not None and kind is PropKind.MAP else None,
            required=bool(data.get("required", False)),
            read_only=bool(data.get("read_only", False)),
            primary_identifier=bool(data.get("primary_identifier", False)),
            documentation=data.get("documentation"),
            enum=tuple(enum) if enum is not None else None,
            default=data.get("default"),
            ref=data.get("ref"),
        )


def entry_name(name: str) -> str:
    return f"{name}Item"


def object_prop(name: str, parent_path: Tuple[str, ...], children: Iterable[PropSpec] = (), **kwargs: Any) -> PropSpec:
    path = parent_path + (name,)
    return PropSpec(
        name=name,
        kind=PropKind.OBJECT,
        path=path,
        children=tuple(child.rebased(path) for child in children),
        **kwargs,
    )


def normalize_socket_name(segments: Iterable[str]) -> str:
    return "".join(_NON_ALNUM.sub("", segment) for segment in segments)


def socket_key(name: str) -> str:
    return _NON_ALNUM.sub("", name).lower()


def iter_named_props(prop: PropSpec, segments: Tuple[str, ...] = ()) -> Iterator[Tuple[PropSpec, Tuple[str, ...]]]:
    """Walk the object children of ``prop`` in declared order.

    Yields each property with its naming segments below ``prop``. Array and
    map entries are not descended into.
    """
    for child in prop.children:
        child_segments = segments + (child.name,)
        yield child, child_segments
        if child.kind is PropKind.OBJECT:
            yield from iter_named_props(child, child_segments)


@dataclass(frozen=True)
class SocketSpec:
    name: str
    direction: SocketDirection
    annotation: str
    arity: str = "one"
    prop_path: Optional[str] = None
    connects_to: Optional[Tuple[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "direction": self.direction.value,
            "annotation": self.annotation,
            "arity": self.arity,
        }
        if self.prop_path is not None:
            payload["prop_path"] = self.prop_path
        if self.connects_to is not None:
            payload["connects_to"] = list(self.connects_to)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SocketSpec":
        connects_to = data.get("connects_to")
        return cls(
            name=data["name"],
            direction=SocketDirection(data["direction"]),
            annotation=data["annotation"],
            arity=data.get("arity", "one"),
            prop_path=data.get("prop_path"),
            connects_to=(connects_to[0], connects_to[1]) if connects_to else None,
        )


@dataclass(frozen=True)
class FuncSpec:
    name: str
    kind: FuncKind
    code: str = ""
    handler: str = "main"
    display_name: Optional[str] = None
    description: Optional[str] = None
    action_kind: Optional[str] = None
    leaf_kind: Optional[str] = None
    generated: bool = True
    unique_id: str = ""
    code_sha256: str = ""

    @property
    def slot(self) -> Tuple[str, str]:
        if self.kind is FuncKind.ACTION and self.action_kind:
            return (self.kind.value, self.action_kind)
        if self.kind is FuncKind.LEAF and self.leaf_kind:
            return (self.kind.value, self.leaf_kind)
        return (self.kind.value, self.name)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
            "unique_id": self.unique_id,
            "generated": self.generated,
        }
        if self.kind is FuncKind.INTRINSIC:
            return payload
        payload["handler"] = self.handler
        payload["code"] = self.code
        payload["code_sha256"] = self.code_sha256
        if self.display_name is not None:
            payload["display_name"] = self.display_name
        if self.description is not None:
            payload["description"] = self.description
        if self.action_kind is not None:
            payload["action_kind"] = self.action_kind
        if self.leaf_kind is not None:
            payload["leaf_kind"] = self.leaf_kind
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FuncSpec":
        return cls(
            name=data["name"],
            kind=FuncKind(data["kind"]),
            code=data.get("code", ""),
            handler=data.get("handler", "main"),
            display_name=data.get("display_name"),
            description=data.get("description"),
            action_kind=data.get("action_kind"),
            leaf_kind=data.get("leaf_kind"),
            generated=bool(data.get("generated", True)),
            unique_id=data.get("unique_id", ""),
            code_sha256=data.get("code_sha256", ""),
        )


def make_func(spec_name: str, name: str, kind: FuncKind, code: str, **kwargs: Any) -> FuncSpec:
    return FuncSpec(
        name=name,
        kind=kind,
        code=code,
        code_sha256=hash_text(code),
        unique_id=hash_text(spec_name, name, code),
        **kwargs,
    )


@dataclass(frozen=True)
class PkgSpec:
    name: str
    type_name: str
    variant: str
    root: PropSpec
    category: str = ""
    color: str = ""
    description: Optional[str] = None
    schema_id: Optional[str] = None
    sockets: Tuple[SocketSpec, ...] = ()
    funcs: Tuple[FuncSpec, ...] = ()
    parent: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    @property
    def domain(self) -> PropSpec:
        domain = self.root.child(DOMAIN)
        if domain is None:
            raise KeyError(f"{self.name} has no domain property")
        return domain

    @property
    def is_sub_asset(self) -> bool:
        return self.parent is not None

    def with_domain(self, domain: PropSpec) -> "PkgSpec":
        return replace(self, root=self.root.with_child(domain))

    def socket(self, name: str, direction: SocketDirection) -> Optional[SocketSpec]:
        for socket in self.sockets:
            if socket.name == name and socket.direction is direction:
                return socket
        return None

    def sockets_for(self, direction: SocketDirection) -> List[SocketSpec]:
        return [socket for socket in self.sockets if socket.direction is direction]

    def with_socket(self, socket: SocketSpec) -> "PkgSpec":
        sockets = list(self.sockets)
        for idx, existing in enumerate(sockets):
            if existing.name == socket.name and existing.direction is socket.direction:
                sockets[idx] = socket
                return replace(self, sockets=tuple(sockets))
        sockets.append(socket)
        return replace(self, sockets=tuple(sockets))

    def with_func(self, func: FuncSpec) -> "PkgSpec":
        if any(existing.unique_id == func.unique_id for existing in self.funcs):
            return self
        return replace(self, funcs=self.funcs + (func,))

    def funcs_of(self, kind: FuncKind) -> List[FuncSpec]:
        return [func for func in self.funcs if func.kind is kind]

    def with_warning(self, message: str) -> "PkgSpec":
        if message in self.warnings:
            return self
        return replace(self, warnings=self.warnings + (message,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type_name": self.type_name,
            "variant": self.variant,
            "schema_id": self.schema_id,
            "category": self.category,
            "color": self.color,
            "description": self.description,
            "parent": self.parent,
            "props": self.root.to_dict(),
            "sockets": [socket.to_dict() for socket in self.sockets],
            "funcs": [func.to_dict() for func in self.funcs],
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PkgSpec":
        return cls(
            name=data["name"],
            type_name=data["type_name"],
            variant=data["variant"],
            root=PropSpec.from_dict(data["props"]),
            category=data.get("category", ""),
            color=data.get("color", ""),
            description=data.get("description"),
            schema_id=data.get("schema_id"),
            sockets=tuple(SocketSpec.from_dict(item) for item in data.get("sockets", []) or []),
            funcs=tuple(FuncSpec.from_dict(item) for item in data.get("funcs", []) or []),
            parent=data.get("parent"),
            warnings=tuple(data.get("warnings", []) or []),
        )


@dataclass(frozen=True)
class Lineage:
    parent: str
    child: str
    path: str

    def to_dict(self) -> Dict[str, str]:
        return {"parent": self.parent, "child": self.child, "path": self.path}


@dataclass(frozen=True)
class SpecCollection:
    """The value threaded through every pipeline stage.

    Specs are kept sorted by name so that tie-breaks downstream never depend
    on the order in which a stage produced them.
    """

    specs: Tuple[PkgSpec, ...] = ()
    lineage: Tuple[Lineage, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = field(default=(), compare=False)

    @classmethod
    def of(cls, specs: Iterable[PkgSpec]) -> "SpecCollection":
        return cls(specs=_sorted(specs))

    def names(self) -> List[str]:
        return [spec.name for spec in self.specs]

    def get(self, name: str) -> Optional[PkgSpec]:
        for spec in self.specs:
            if spec.name == name:
                return spec
        return None

    def evolve(
        self,
        specs: Optional[Iterable[PkgSpec]] = None,
        diagnostics: Iterable[Diagnostic] = (),
        lineage: Iterable[Lineage] = (),
    ) -> "SpecCollection":
        return SpecCollection(
            specs=_sorted(specs) if specs is not None else self.specs,
            lineage=self.lineage + tuple(lineage),
            diagnostics=self.diagnostics + tuple(diagnostics),
        )

    def __len__(self) -> int:
        return len(self.specs)

    def __iter__(self) -> Iterator[PkgSpec]:
        return iter(self.specs)


def _sorted(specs: Iterable[PkgSpec]) -> Tuple[PkgSpec, ...]:
    return tuple(sorted(specs, key=lambda spec: spec.name))
