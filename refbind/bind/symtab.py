"""Symbol table: one Symbol per distinct type reachable from the bound surface.

Classification decides, for every type, how its values cross the boundary:
by value (basic types, named basic types, ``error`` as text) or as an opaque
handle (``needs_wrap``). Identifiers are derived from fully qualified names
only, so two runs over the same declarations produce the same ids.
"""

import enum
from typing import Iterator, Optional, Union

from refbind import logging as refbind_logging
from refbind.decl.types import (Array, Basic, Interface, Map, Named,
                                PackageRef, Pointer, Signature, Slice, Struct,
                                Type, is_error_type)
from refbind.errors import ClassificationError
from refbind.utils import sanitize_identifier, short_digest

logger = refbind_logging.get_logger(__name__)


class SymbolKind(enum.IntFlag):
    BASIC = enum.auto()
    NAMED = enum.auto()
    STRUCT = enum.auto()
    ARRAY = enum.auto()
    SLICE = enum.auto()
    MAP = enum.auto()
    SIGNATURE = enum.auto()
    POINTER = enum.auto()
    INTERFACE = enum.auto()


class Protocol(enum.IntFlag):
    NONE = 0
    STRINGER = enum.auto()


_WRAPPED_KINDS = (
    SymbolKind.STRUCT
    | SymbolKind.ARRAY
    | SymbolKind.SLICE
    | SymbolKind.MAP
    | SymbolKind.SIGNATURE
    | SymbolKind.INTERFACE
)

_C_TYPES = {
    "bool": "uint8_t",
    "int": "int64_t",
    "int8": "int8_t",
    "int16": "int16_t",
    "int32": "int32_t",
    "int64": "int64_t",
    "uint": "uint64_t",
    "uint8": "uint8_t",
    "uint16": "uint16_t",
    "uint32": "uint32_t",
    "uint64": "uint64_t",
    "uintptr": "uintptr_t",
    "float32": "float",
    "float64": "double",
    "complex64": "float _Complex",
    "complex128": "double _Complex",
    "string": "char*",
}

HANDLE_CTYPE = "refbind_handle"


def is_stringer(name: str, sig: Signature) -> bool:
    """``String() string``: the textual representation protocol."""
    if name != "String" or sig.params or sig.variadic or len(sig.results) != 1:
        return False
    result = sig.results[0].type
    return isinstance(result, Basic) and result.is_string


class Symbol:
    """Classification of one source type.

    Constituent symbols (``elem``, ``map_key``, ``fields``, ``params``,
    ``results``) are filled in after the symbol is registered; a symbol seen
    through a cycle may still be incomplete at that moment.
    """

    def __init__(self, id: str, name: str, kind: SymbolKind, type: Type,
                 pkg: Optional[PackageRef] = None, doc: str = ""):
        self.id = id
        self.name = name
        self.kind = kind
        self.type = type
        self.pkg = pkg
        self.doc = doc
        self.elem: Optional[Symbol] = None
        self.map_key: Optional[Symbol] = None
        self.length: Optional[int] = None
        self.fields: list[tuple[str, Symbol]] = []
        self.params: list[Symbol] = []
        self.results: list[Symbol] = []
        self.protocols = Protocol.NONE
        self.complete = False

    @property
    def key(self) -> str:
        return self.type.key()

    def is_kind(self, kind: SymbolKind) -> bool:
        return bool(self.kind & kind)

    @property
    def is_basic(self) -> bool:
        return self.is_kind(SymbolKind.BASIC)

    @property
    def is_named(self) -> bool:
        return self.is_kind(SymbolKind.NAMED)

    @property
    def is_struct(self) -> bool:
        return self.is_kind(SymbolKind.STRUCT)

    @property
    def is_array(self) -> bool:
        return self.is_kind(SymbolKind.ARRAY)

    @property
    def is_slice(self) -> bool:
        return self.is_kind(SymbolKind.SLICE)

    @property
    def is_map(self) -> bool:
        return self.is_kind(SymbolKind.MAP)

    @property
    def is_signature(self) -> bool:
        return self.is_kind(SymbolKind.SIGNATURE)

    @property
    def is_pointer(self) -> bool:
        return self.is_kind(SymbolKind.POINTER)

    @property
    def is_interface(self) -> bool:
        return self.is_kind(SymbolKind.INTERFACE)

    @property
    def is_error(self) -> bool:
        return is_error_type(self.type)

    @property
    def is_type(self) -> bool:
        """Whether the symbol gets its own glue (everything but plain basics)."""
        if self.is_error:
            return False
        return not (self.is_basic and not self.is_named)

    @property
    def needs_wrap(self) -> bool:
        if self.is_error:
            return False
        if self.kind & _WRAPPED_KINDS:
            return True
        if self.is_pointer and self.elem is not None:
            return self.elem.needs_wrap
        return False

    @property
    def is_stringer(self) -> bool:
        return bool(self.protocols & Protocol.STRINGER)

    @property
    def basic(self) -> Optional[Basic]:
        """The primitive a by-value symbol is carried as."""
        t = self.type.underlying if isinstance(self.type, Named) else self.type
        if isinstance(t, Basic):
            return t
        if self.is_pointer and self.elem is not None and not self.needs_wrap:
            return self.elem.basic
        return None

    @property
    def cgoname(self) -> str:
        if self.needs_wrap or self.is_named and not self.is_error:
            return f"cgo_type_{self.id}"
        return self.ctype

    @property
    def ctype(self) -> str:
        if self.needs_wrap:
            return HANDLE_CTYPE
        if self.is_error:
            return "char*"
        basic = self.basic
        if basic is None:
            raise ClassificationError(f"no C spelling for {self.name}", decl=self.key)
        return _C_TYPES[basic.name]

    @property
    def pytype(self) -> str:
        if self.is_error:
            return "str"
        if self.needs_wrap or self.is_named:
            return self.type.name if isinstance(self.type, Named) else self.id
        basic = self.basic
        if basic is None:
            return "object"
        if basic.is_bool:
            return "bool"
        if basic.is_integer:
            return "int"
        if basic.is_float:
            return "float"
        if basic.is_complex:
            return "complex"
        return "str"

    def kind_names(self) -> list[str]:
        return [k.name.lower() for k in SymbolKind if self.kind & k]

    def __repr__(self) -> str:
        return f"Symbol({self.id}, {'|'.join(self.kind_names())})"


class SymbolTable:
    """Registry of classified types for one generation run."""

    def __init__(self):
        self._syms: dict[str, Symbol] = {}
        self._ids: dict[str, str] = {}
        self._depth = 0
        self._added: list[str] = []

    def __len__(self) -> int:
        return len(self._syms)

    def __contains__(self, item: Union[Type, str]) -> bool:
        key = item if isinstance(item, str) else item.key()
        return key in self._syms

    def names(self) -> list[str]:
        return sorted(self._syms)

    def symbols(self) -> Iterator[Symbol]:
        for key in self.names():
            yield self._syms[key]

    def sym(self, key: str) -> Optional[Symbol]:
        return self._syms.get(key)

    def by_id(self, id: str) -> Optional[Symbol]:
        key = self._ids.get(id)
        return self._syms.get(key) if key is not None else None

    def lookup(self, t: Type) -> Optional[Symbol]:
        return self._syms.get(t.key())

    def classify(self, t: Type, decl: Optional[str] = None) -> Symbol:
        """Return the Symbol for ``t``, classifying it (and its parts) on first use.

        A failing call leaves the table exactly as it was before the call.
        """
        key = t.key()
        existing = self._syms.get(key)
        if existing is not None:
            return existing

        if self._depth == 0:
            self._added = []
        self._depth += 1
        try:
            return self._classify(t, key, decl)
        except ClassificationError:
            if self._depth == 1:
                self._rollback()
            raise
        finally:
            self._depth -= 1

    def _rollback(self) -> None:
        for key in self._added:
            sym = self._syms.pop(key, None)
            if sym is not None:
                self._ids.pop(sym.id, None)
        logger.debug("Rolled back %d partially classified symbol(s)", len(self._added))
        self._added = []

    def _register(self, sym: Symbol) -> Symbol:
        other = self._ids.get(sym.id)
        if other is not None and other != sym.key:
            raise ClassificationError(
                f"types {other} and {sym.key} map to the same identifier {sym.id!r}",
                decl=sym.key,
            )
        self._syms[sym.key] = sym
        self._ids[sym.id] = sym.key
        self._added.append(sym.key)
        logger.debug("Registered symbol %s for %s", sym.id, sym.key)
        return sym

    def _classify(self, t: Type, key: str, decl: Optional[str]) -> Symbol:
        if isinstance(t, Basic):
            sym = self._register(Symbol(t.name, t.name, SymbolKind.BASIC, t))
            sym.complete = True
            return sym

        if isinstance(t, Named):
            return self._classify_named(t, decl)

        if isinstance(t, Pointer):
            target = t.elem
            if not isinstance(target, Named):
                raise ClassificationError(
                    f"pointer to unnamed type {target.key()} is not supported", decl=decl or key)
            if is_error_type(target) or isinstance(target.underlying, Interface):
                raise ClassificationError(
                    f"pointer to interface type {target.key()} is not supported", decl=decl or key)
            elem = self.classify(target, decl)
            sym = self._register(Symbol(f"ptr_{elem.id}", t.display(), SymbolKind.POINTER, t))
            sym.elem = elem
            sym.complete = True
            return sym

        if isinstance(t, (Slice, Array, Map, Struct, Signature, Interface)):
            sym = Symbol("", t.display(), SymbolKind(0), t)
            self._fill(sym, t, decl or key)
            self._register(sym)
            sym.complete = True
            return sym

        raise ClassificationError(f"unsupported type {key}", decl=decl or key)

    def _classify_named(self, t: Named, decl: Optional[str]) -> Symbol:
        if is_error_type(t):
            sym = self._register(Symbol("error", "error", SymbolKind.NAMED | SymbolKind.INTERFACE, t))
            sym.complete = True
            return sym
        if t.underlying is None:
            raise ClassificationError(f"type {t.key()} has no definition", decl=decl or t.key())

        sym = Symbol(
            id=f"{sanitize_identifier(t.pkg.name)}_{t.name}",
            name=t.display(),
            kind=SymbolKind.NAMED,
            type=t,
            pkg=t.pkg,
            doc=t.doc,
        )
        # registered before its parts: a cycle back to t resolves to this symbol
        self._register(sym)
        self._fill(sym, t.underlying, t.key())
        for meth in t.method_set(pointer=True):
            if meth.exported and is_stringer(meth.name, meth.signature):
                sym.protocols |= Protocol.STRINGER
        sym.complete = True
        return sym

    def _fill(self, sym: Symbol, u: Type, decl: str) -> None:
        """Set kind flags and constituents of ``sym`` from the shape ``u``."""
        named = sym.is_named
        prefix = None
        if isinstance(u, Basic):
            sym.kind |= SymbolKind.BASIC
        elif isinstance(u, Pointer):
            if not isinstance(u.elem, Named):
                raise ClassificationError(f"pointer to unnamed type {u.elem.key()} is not supported", decl=decl)
            sym.kind |= SymbolKind.POINTER
            sym.elem = self.classify(u.elem, decl)
            prefix = f"ptr_{sym.elem.id}"
        elif isinstance(u, Slice):
            sym.kind |= SymbolKind.SLICE
            sym.elem = self.classify(u.elem, decl)
            prefix = f"Slice_{sym.elem.id}"
        elif isinstance(u, Array):
            sym.kind |= SymbolKind.ARRAY
            sym.length = u.length
            sym.elem = self.classify(u.elem, decl)
            prefix = f"Array_{u.length}_{sym.elem.id}"
        elif isinstance(u, Map):
            sym.kind |= SymbolKind.MAP
            sym.map_key = self.classify(u.key_type, decl)
            sym.elem = self.classify(u.elem, decl)
            prefix = f"Map_{sym.map_key.id}_{sym.elem.id}"
        elif isinstance(u, Struct):
            sym.kind |= SymbolKind.STRUCT
            for f in u.exported_fields():
                sym.fields.append((f.name, self.classify(f.type, f"{decl}.{f.name}")))
            prefix = f"Struct_{short_digest(u.key())}"
        elif isinstance(u, Signature):
            sym.kind |= SymbolKind.SIGNATURE
            if u.variadic and u.params and isinstance(_shape(u.params[-1].type.elem), Interface):
                raise ClassificationError("variadic interface parameters are not supported", decl=decl)
            sym.params = [self.classify(p.type, decl) for p in u.params]
            sym.results = [self.classify(r.type, decl) for r in u.results]
            prefix = f"Func_{short_digest(u.key())}"
        elif isinstance(u, Interface):
            if not u.is_empty:
                raise ClassificationError(f"interface type {u.key()} is not supported", decl=decl)
            sym.kind |= SymbolKind.INTERFACE
            prefix = "interface"
        else:
            raise ClassificationError(f"unsupported type {u.key()}", decl=decl)

        if not named:
            sym.id = prefix


def _shape(t: Type) -> Type:
    if isinstance(t, Named) and not is_error_type(t):
        return t.underlying
    return t
