"""Type grammar of the managed module.

Every type that appears in a declaration is one of the classes below. Named
types are compared by identity of ``(pkg.path, name)``; every other type is
structural and compares equal when its canonical key does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PackageRef:
    path: str
    name: str


class Type:
    def key(self) -> str:
        """Canonical, fully qualified spelling. Used as the registry key."""
        raise NotImplementedError

    def display(self, pkg: Optional[PackageRef] = None) -> str:
        """Spelling relative to ``pkg``: ``hi.Person`` instead of the import path."""
        raise NotImplementedError

    def __str__(self) -> str:
        return self.key()


@dataclass(frozen=True, eq=True)
class Basic(Type):
    name: str

    def key(self) -> str:
        return self.name

    def display(self, pkg=None) -> str:
        return self.name

    @property
    def is_string(self) -> bool:
        return self.name == "string"

    @property
    def is_bool(self) -> bool:
        return self.name == "bool"

    @property
    def is_integer(self) -> bool:
        return self.name.startswith(("int", "uint"))

    @property
    def is_float(self) -> bool:
        return self.name.startswith("float")

    @property
    def is_complex(self) -> bool:
        return self.name.startswith("complex")


BASIC_NAMES = (
    "bool",
    "int", "int8", "int16", "int32", "int64",
    "uint", "uint8", "uint16", "uint32", "uint64", "uintptr",
    "float32", "float64",
    "complex64", "complex128",
    "string",
)

BASIC_TYPES: dict[str, Basic] = {name: Basic(name) for name in BASIC_NAMES}
BASIC_TYPES["byte"] = BASIC_TYPES["uint8"]
BASIC_TYPES["rune"] = BASIC_TYPES["int32"]

STRING = BASIC_TYPES["string"]


@dataclass(frozen=True)
class Param:
    name: str
    type: Type


@dataclass(frozen=True)
class Field:
    name: str
    type: Type
    embedded: bool = False

    @property
    def exported(self) -> bool:
        return bool(self.name) and self.name[0].isupper()


@dataclass(frozen=True, eq=False)
class Pointer(Type):
    elem: Type

    def key(self) -> str:
        return "*" + self.elem.key()

    def display(self, pkg=None) -> str:
        return "*" + self.elem.display(pkg)

    def __eq__(self, other):
        return isinstance(other, Pointer) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


@dataclass(frozen=True, eq=False)
class Slice(Type):
    elem: Type

    def key(self) -> str:
        return "[]" + self.elem.key()

    def display(self, pkg=None) -> str:
        return "[]" + self.elem.display(pkg)

    def __eq__(self, other):
        return isinstance(other, Slice) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


@dataclass(frozen=True, eq=False)
class Array(Type):
    length: int
    elem: Type

    def key(self) -> str:
        return f"[{self.length}]{self.elem.key()}"

    def display(self, pkg=None) -> str:
        return f"[{self.length}]{self.elem.display(pkg)}"

    def __eq__(self, other):
        return isinstance(other, Array) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


@dataclass(frozen=True, eq=False)
class Map(Type):
    key_type: Type
    elem: Type

    def key(self) -> str:
        return f"map[{self.key_type.key()}]{self.elem.key()}"

    def display(self, pkg=None) -> str:
        return f"map[{self.key_type.display(pkg)}]{self.elem.display(pkg)}"

    def __eq__(self, other):
        return isinstance(other, Map) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


@dataclass(frozen=True, eq=False)
class Struct(Type):
    fields: tuple[Field, ...] = ()

    def key(self) -> str:
        parts = []
        for f in self.fields:
            if f.embedded:
                parts.append(f.type.key())
            else:
                parts.append(f"{f.name} {f.type.key()}")
        return "struct{" + "; ".join(parts) + "}"

    def display(self, pkg=None) -> str:
        parts = []
        for f in self.fields:
            if f.embedded:
                parts.append(f.type.display(pkg))
            else:
                parts.append(f"{f.name} {f.type.display(pkg)}")
        return "struct{" + "; ".join(parts) + "}"

    def exported_fields(self) -> list[Field]:
        return [f for f in self.fields if f.exported]

    def __eq__(self, other):
        return isinstance(other, Struct) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


def _tuple_string(params: tuple[Param, ...], variadic: bool, render) -> str:
    parts = []
    for i, p in enumerate(params):
        spelled = render(p.type)
        if variadic and i == len(params) - 1:
            # variadic parameters are carried as a slice of the element
            spelled = "..." + spelled[2:]
        parts.append(spelled)
    return ", ".join(parts)


@dataclass(frozen=True, eq=False)
class Signature(Type):
    params: tuple[Param, ...] = ()
    results: tuple[Param, ...] = ()
    variadic: bool = False

    def _render(self, render) -> str:
        out = "func(" + _tuple_string(self.params, self.variadic, render) + ")"
        if len(self.results) == 1:
            out += " " + render(self.results[0].type)
        elif self.results:
            out += " (" + _tuple_string(self.results, False, render) + ")"
        return out

    def key(self) -> str:
        return self._render(lambda t: t.key())

    def display(self, pkg=None) -> str:
        return self._render(lambda t: t.display(pkg))

    def __eq__(self, other):
        return isinstance(other, Signature) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


@dataclass(frozen=True)
class Method:
    name: str
    signature: Signature
    doc: str = ""
    pointer_receiver: bool = False

    @property
    def exported(self) -> bool:
        return bool(self.name) and self.name[0].isupper()


@dataclass(frozen=True, eq=False)
class Interface(Type):
    methods: tuple[Method, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.methods

    def key(self) -> str:
        if self.is_empty:
            return "interface{}"
        body = "; ".join(m.name + m.signature.key()[len("func"):] for m in self.methods)
        return "interface{" + body + "}"

    def display(self, pkg=None) -> str:
        if self.is_empty:
            return "interface{}"
        body = "; ".join(m.name + m.signature.display(pkg)[len("func"):] for m in self.methods)
        return "interface{" + body + "}"

    def __eq__(self, other):
        return isinstance(other, Interface) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


EMPTY_INTERFACE = Interface()


class Named(Type):
    """A declared type. Built empty first, completed by the manifest loader."""

    def __init__(self, pkg: Optional[PackageRef], name: str,
                 underlying: Optional[Type] = None, methods=None, doc: str = ""):
        self.pkg = pkg
        self.name = name
        self.underlying = underlying
        self.methods: list[Method] = list(methods) if methods else []
        self.doc = doc

    def key(self) -> str:
        if self.pkg is None:
            return self.name
        return f"{self.pkg.path}.{self.name}"

    def display(self, pkg=None) -> str:
        if self.pkg is None:
            return self.name
        return f"{self.pkg.name}.{self.name}"

    def add_method(self, method: Method) -> None:
        self.methods.append(method)

    def method_set(self, pointer: bool = True) -> list[Method]:
        """Methods callable on ``*T`` (``pointer=True``) or on ``T``, sorted by name."""
        meths = [m for m in self.methods if pointer or not m.pointer_receiver]
        return sorted(meths, key=lambda m: m.name)

    def __eq__(self, other):
        return isinstance(other, Named) and self.key() == other.key()

    def __hash__(self):
        return hash(self.key())

    def __repr__(self) -> str:
        return f"Named({self.key()})"


ERROR = Named(
    None,
    "error",
    Interface((Method("Error", Signature(results=(Param("", STRING),))),)),
)


def is_error_type(t: Type) -> bool:
    """True for the failure indicator ``error``."""
    return isinstance(t, Named) and t.pkg is None and t.name == "error"


def underlying(t: Type) -> Type:
    if isinstance(t, Named):
        if t.underlying is None:
            raise TypeError(f"named type {t.key()} has no underlying type yet")
        return t.underlying
    return t


UNIVERSE: dict[str, Type] = dict(BASIC_TYPES)
UNIVERSE["error"] = ERROR
UNIVERSE["any"] = EMPTY_INTERFACE
