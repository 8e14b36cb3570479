"""Entity builders: Types, Structs, Consts, Vars and Funcs of one package."""

from typing import Any, Iterator, Optional

from refbind import logging as refbind_logging
from refbind.data_types import EntityKind
from refbind.decl.manifest import PackageDecl
from refbind.decl.types import BASIC_TYPES, STRING, Named, Pointer
from refbind.errors import ClassificationError, SignatureError
from refbind.utils import is_exported

from .signature import Func, Signature, Var, analyze, split_results
from .symtab import Protocol, Symbol, SymbolTable

logger = refbind_logging.get_logger(__name__)

_INT = BASIC_TYPES["int"]


class Type:
    """A bound type: its symbol plus constructors, methods and pseudo-funcs.

    Wrapped types get a ``new`` (zero value) and a ``str`` entry. Slices and
    arrays also get ``len``, ``item`` and ``set_item`` (slices ``append`` as
    well), maps get ``len``, ``item`` and ``set_item`` keyed by the map key,
    and function values get ``call``. Named basic types cross by value and
    only carry methods.
    """

    kind = EntityKind.TYPE

    def __init__(self, pkg: "Package", sym: Symbol, string_sym: Symbol):
        self.pkg = pkg
        self.sym = sym
        self.doc = sym.doc
        self._ctors: list[Func] = []
        self._methods: list[Func] = []
        self.new: Optional[Func] = None
        self.str: Optional[Func] = None
        self.len: Optional[Func] = None
        self.item: Optional[Func] = None
        self.set_item: Optional[Func] = None
        self.append: Optional[Func] = None
        self.call: Optional[Func] = None
        if not sym.needs_wrap:
            return
        self.new = self._pseudo("new", (), Var("ret", sym))
        self.str = self._pseudo("str", (Var("self", sym),), Var("ret", string_sym))
        if sym.is_slice or sym.is_array or sym.is_map:
            int_sym = pkg.table.classify(_INT)
            index = Var("key", sym.map_key) if sym.is_map else Var("index", int_sym)
            self.len = self._pseudo("len", (Var("self", sym),), Var("ret", int_sym))
            self.item = self._pseudo("item", (Var("self", sym), index), Var("ret", sym.elem))
            self.set_item = self._pseudo("set_item", (Var("self", sym), index, Var("value", sym.elem)))
            if sym.is_slice:
                self.append = self._pseudo("append", (Var("self", sym), Var("value", sym.elem)))
        elif sym.is_signature:
            self.call = self._call_func()

    def _pseudo(self, name: str, params: tuple[Var, ...], ret: Optional[Var] = None,
                err: bool = False, results: Optional[tuple[Var, ...]] = None) -> Func:
        if results is None:
            results = (ret,) if ret is not None else ()
        return Func(self.pkg.ref, Signature(params=params, results=results), name, scope=self.name,
                    ret=ret, err=err, generated=True, id=f"{self.sym.id}_{name}")

    def _call_func(self) -> Optional[Func]:
        sym = self.sym
        params = [Var(f"arg{i}", p) for i, p in enumerate(sym.params)]
        results = [Var(f"res{i}", r) for i, r in enumerate(sym.results)]
        try:
            ret, err = split_results(results, sym.key)
        except SignatureError as e:
            logger.debug("Function values of %s are not callable: %s", sym.key, e)
            return None
        return self._pseudo("call", (Var("self", sym), *params), ret, err, results=tuple(results))

    def generated_funcs(self) -> list[Func]:
        """Pseudo-funcs of the type: ``new``, ``str`` and the container or call entries."""
        candidates = (self.new, self.str, self.len, self.item, self.set_item, self.append, self.call)
        return [f for f in candidates if f is not None]

    @property
    def name(self) -> str:
        if isinstance(self.sym.type, Named):
            return self.sym.type.name
        return self.sym.id

    @property
    def id(self) -> str:
        return self.sym.id

    @property
    def by_value(self) -> bool:
        return not self.sym.needs_wrap

    @property
    def protocols(self) -> Protocol:
        return self.sym.protocols

    @property
    def ctors(self) -> tuple[Func, ...]:
        return tuple(self._ctors)

    @property
    def methods(self) -> tuple[Func, ...]:
        return tuple(self._methods)

    def funcs(self) -> Iterator[Func]:
        """Every entry point owned by the type, in emission order."""
        yield from self.generated_funcs()
        yield from self._methods

    def __hash__(self):
        return hash(self.sym.key)

    def __eq__(self, other):
        return isinstance(other, Type) and self.sym.key == other.sym.key

    def __repr__(self):
        return f"{type(self).__name__}({self.id})"


class StructField:
    def __init__(self, owner: Symbol, name: str, sym: Symbol, index: int, ref):
        self.name = name
        self.sym = sym
        self.index = index
        self.getter = Func(ref, Signature(params=(Var("self", owner),), results=(Var("ret", sym),)),
                           f"{name}_get", scope=owner.id, ret=Var("ret", sym), generated=True,
                           id=f"{owner.id}_{name}_get")
        self.setter = Func(ref, Signature(params=(Var("self", owner), Var("value", sym))),
                           f"{name}_set", scope=owner.id, generated=True,
                           id=f"{owner.id}_{name}_set")

    def __repr__(self):
        return f"StructField({self.name}: {self.sym.id})"


class Struct(Type):
    kind = EntityKind.STRUCT

    def __init__(self, pkg: "Package", sym: Symbol, string_sym: Symbol):
        super().__init__(pkg, sym, string_sym)
        shape = sym.type.underlying if isinstance(sym.type, Named) else sym.type
        positions = {f.name: i for i, f in enumerate(shape.fields)}
        self.fields = tuple(
            StructField(sym, name, fsym, positions[name], pkg.ref) for name, fsym in sym.fields
        )

    def funcs(self) -> Iterator[Func]:
        yield from self.generated_funcs()
        for field in self.fields:
            yield field.getter
            yield field.setter
        yield from self._methods


class Const:
    kind = EntityKind.CONSTANT

    def __init__(self, pkg: "Package", name: str, sym: Symbol, value: Any = None, doc: str = ""):
        self.pkg = pkg
        self.name = name
        self.sym = sym
        self.value = value
        self.doc = doc
        self.id = f"{pkg.id_prefix}_{name}"
        self.getter = Func(pkg.ref, Signature(results=(Var("ret", sym),)), f"{name}_get",
                           ret=Var("ret", sym), generated=True, id=f"{self.id}_get")

    def __repr__(self):
        return f"Const({self.id})"


class Variable:
    kind = EntityKind.VARIABLE

    def __init__(self, pkg: "Package", name: str, sym: Symbol, doc: str = ""):
        self.pkg = pkg
        self.name = name
        self.sym = sym
        self.doc = doc
        self.id = f"{pkg.id_prefix}_{name}"
        self.getter = Func(pkg.ref, Signature(results=(Var("ret", sym),)), f"{name}_get",
                           ret=Var("ret", sym), generated=True, id=f"{self.id}_get")
        self.setter = Func(pkg.ref, Signature(params=(Var("value", sym),)), f"{name}_set",
                           generated=True, id=f"{self.id}_set")

    def __repr__(self):
        return f"Variable({self.id})"


class Package:
    """The bound surface of one managed package.

    ``process()`` runs the build phases once; afterwards every collection is
    exposed as a tuple and the package is not modified again.
    """

    def __init__(self, decl: PackageDecl, table: SymbolTable):
        self.decl = decl
        self.table = table
        self.ref = decl.ref
        self.doc = decl.doc
        self.id_prefix = decl.ref.name
        self.types: tuple[Type, ...] = ()
        self.funcs: tuple[Func, ...] = ()
        self.consts: tuple[Const, ...] = ()
        self.vars: tuple[Variable, ...] = ()
        self._processed = False

    @property
    def name(self) -> str:
        return self.ref.name

    @property
    def path(self) -> str:
        return self.ref.path

    def process(self, claimed: Optional[set[str]] = None) -> "Package":
        """Build every entity of the package.

        ``claimed`` holds keys of unnamed composite symbols already emitted
        by an earlier package of the same run; it is updated in place.
        """
        if self._processed:
            return self
        claimed = claimed if claimed is not None else set()
        table = self.table
        decl = self.decl
        string_sym = table.classify(STRING)

        # phase 1: classify every exported declaration
        type_syms = []
        for tdecl in decl.types:
            if not self._exported(tdecl.named.name):
                continue
            sym = table.classify(tdecl.named, f"{self.path}.{tdecl.name}")
            type_syms.append(sym)

        # phase 2: entities
        consts = []
        for vdecl in decl.consts:
            if not self._exported(vdecl.name):
                continue
            sym = table.classify(vdecl.type, f"{self.path}.{vdecl.name}")
            if sym.needs_wrap or sym.is_error or sym.basic is None:
                raise ClassificationError("constants must have a basic type", decl=f"{self.path}.{vdecl.name}")
            consts.append(Const(self, vdecl.name, sym, vdecl.value, vdecl.doc))

        variables = []
        for vdecl in decl.vars:
            if not self._exported(vdecl.name):
                continue
            sym = table.classify(vdecl.type, f"{self.path}.{vdecl.name}")
            variables.append(Variable(self, vdecl.name, sym, vdecl.doc))

        free_funcs = []
        for fdecl in decl.funcs:
            if not self._exported(fdecl.name):
                continue
            free_funcs.append(analyze(table, self.ref, fdecl.name, fdecl.signature, docs=decl.docs))

        types: dict[str, Type] = {}
        for sym in type_syms:
            types[sym.key] = self._new_type(sym, string_sym)

        roots = list(type_syms) + [c.sym for c in consts] + [v.sym for v in variables]
        for f in free_funcs:
            roots.extend(v.sym for v in f.signature.params + f.signature.results)
        for sym in _unnamed_composites(roots):
            if sym.key in claimed:
                continue
            claimed.add(sym.key)
            types[sym.key] = self._new_type(sym, string_sym)

        # phase 3: constructor promotion
        remaining = []
        for fct in free_funcs:
            owner = self._ctor_owner(fct, types)
            if owner is None:
                remaining.append(fct)
                continue
            ctor = fct.promoted(owner.name, decl.docs.lookup(owner.name, fct.name) or fct.doc)
            params = [p.sym.id for p in ctor.params]
            for other in owner._ctors:
                if [p.sym.id for p in other.params] == params:
                    raise ClassificationError(
                        f"ambiguous constructors {other.name} and {ctor.name} for type {owner.name}",
                        decl=ctor.desc,
                    )
            owner._ctors.append(ctor)
            logger.debug("Promoted %s to constructor of %s", fct.desc, owner.name)

        # phase 4: method attachment; may add composites to types
        for t in list(types.values()):
            if not isinstance(t.sym.type, Named):
                continue
            named = t.sym.type
            if not t.by_value:
                table.classify(Pointer(named), named.key())
            for meth in named.method_set(pointer=True):
                if not meth.exported:
                    continue
                fct = analyze(table, self.ref, meth.name, meth.signature, scope=named.name,
                              docs=decl.docs, recv=t.sym)
                if not fct.doc:
                    fct.doc = meth.doc
                t._methods.append(fct)
            # fresh symbols from method signatures are reachable only through the type
            extra = [v.sym for m in t._methods for v in m.signature.params + m.signature.results]
            for sym in _unnamed_composites(extra):
                if sym.key not in claimed and sym.key not in types:
                    claimed.add(sym.key)
                    types[sym.key] = self._new_type(sym, string_sym)

        self.types = tuple(sorted(types.values(), key=lambda t: t.name))
        self.funcs = tuple(sorted(remaining, key=lambda f: f.name))
        self.consts = tuple(sorted(consts, key=lambda c: c.name))
        self.vars = tuple(sorted(variables, key=lambda v: v.name))
        self._processed = True
        logger.info(
            "Package %s: %d type(s), %d function(s), %d constant(s), %d variable(s)",
            self.path, len(self.types), len(self.funcs), len(self.consts), len(self.vars),
        )
        return self

    def _exported(self, name: str) -> bool:
        if is_exported(name):
            return True
        logger.debug("Skipping unexported %s.%s", self.path, name)
        return False

    def _new_type(self, sym: Symbol, string_sym: Symbol) -> Type:
        if sym.is_struct:
            return Struct(self, sym, string_sym)
        return Type(self, sym, string_sym)

    def _ctor_owner(self, fct: Func, types: dict[str, Type]) -> Optional[Type]:
        if fct.ret is None or len(fct.results) != 1:
            return None
        rsym = fct.ret.sym
        if rsym.is_pointer and not rsym.is_named:
            rsym = rsym.elem
        owner = types.get(rsym.key)
        if owner is None or not isinstance(owner.sym.type, Named) or owner.sym.pkg != self.ref:
            return None
        return owner

    def structs(self) -> tuple[Struct, ...]:
        return tuple(t for t in self.types if isinstance(t, Struct))

    def plain_types(self) -> tuple[Type, ...]:
        return tuple(t for t in self.types if not isinstance(t, Struct))

    def ctors(self) -> tuple[Func, ...]:
        return tuple(c for t in self.types for c in t.ctors)

    def entities(self) -> list[tuple[EntityKind, Any]]:
        """All entities in emission order."""
        groups = {
            EntityKind.TYPE: self.plain_types(),
            EntityKind.STRUCT: self.structs(),
            EntityKind.CONSTRUCTOR: self.ctors(),
            EntityKind.FUNCTION: self.funcs,
            EntityKind.CONSTANT: self.consts,
            EntityKind.VARIABLE: self.vars,
        }
        return [(kind, item) for kind in EntityKind for item in groups[kind]]

    def all_funcs(self) -> list[Func]:
        """Every foreign entry point of the package, in emission order."""
        out: list[Func] = []
        for kind, item in self.entities():
            if kind in (EntityKind.TYPE, EntityKind.STRUCT):
                out.extend(item.funcs())
            elif kind in (EntityKind.CONSTRUCTOR, EntityKind.FUNCTION):
                out.append(item)
            elif kind is EntityKind.CONSTANT:
                out.append(item.getter)
            else:
                out.extend((item.getter, item.setter))
        return out

    def __repr__(self):
        return f"Package({self.path})"


def _unnamed_composites(roots: list[Symbol]) -> list[Symbol]:
    """Wrapped unnamed symbols reachable from ``roots``, sorted by key."""
    seen: dict[str, Symbol] = {}
    stack = list(roots)
    visited: set[str] = set()
    while stack:
        sym = stack.pop()
        if sym.key in visited:
            continue
        visited.add(sym.key)
        if sym.needs_wrap and not sym.is_named and not sym.is_pointer:
            seen[sym.key] = sym
        for part in (sym.elem, sym.map_key):
            if part is not None:
                stack.append(part)
        stack.extend(s for _, s in sym.fields)
        stack.extend(sym.params)
        stack.extend(sym.results)
    return [seen[k] for k in sorted(seen)]
