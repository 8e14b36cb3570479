"""Callable contracts: parameters, results and the error convention."""

import copy
from typing import Optional

from refbind import logging as refbind_logging
from refbind.decl.docs import DocIndex
from refbind.decl.types import Interface, PackageRef
from refbind.decl.types import Signature as RawSignature
from refbind.decl.types import is_error_type, underlying
from refbind.errors import SignatureError
from refbind.utils import sanitize_identifier

from .symtab import Symbol, SymbolTable, is_stringer

logger = refbind_logging.get_logger(__name__)


class Var:
    """A typed slot: parameter, result, field or package variable."""

    def __init__(self, name: str, sym: Symbol, doc: str = ""):
        self.name = name
        self.sym = sym
        self.doc = doc

    @property
    def needs_wrap(self) -> bool:
        return self.sym.needs_wrap

    @property
    def is_error(self) -> bool:
        return self.sym.is_error

    def __repr__(self):
        return f"Var({self.name}: {self.sym.id})"


class Signature:
    def __init__(self, params: tuple[Var, ...] = (), results: tuple[Var, ...] = (),
                 recv: Optional[Var] = None, variadic: bool = False):
        self.params = tuple(params)
        self.results = tuple(results)
        self.recv = recv
        self.variadic = variadic


class Func:
    """One foreign-callable entry point.

    ``ret`` is the single value result (or None), ``err`` marks the error
    convention. Generated pseudo-funcs (getters, setters, ``new``, ``str``)
    carry an explicit ``id``.
    """

    def __init__(self, pkg: PackageRef, signature: Signature, name: str,
                 scope: Optional[str] = None, doc: str = "",
                 ret: Optional[Var] = None, err: bool = False,
                 generated: bool = False, id: Optional[str] = None):
        self.pkg = pkg
        self.signature = signature
        self.name = name
        self.scope = scope
        self.doc = doc
        self.ret = ret
        self.err = err
        self.ctor = False
        self.ctor_of: Optional[str] = None
        self.stringer = False
        self.generated = generated
        if id is None:
            parts = [sanitize_identifier(pkg.name)] + ([scope] if scope else []) + [name]
            id = "_".join(parts)
        self.id = id

    @property
    def desc(self) -> str:
        if self.scope:
            return f"{self.pkg.path}.{self.scope}.{self.name}"
        return f"{self.pkg.path}.{self.name}"

    @property
    def params(self) -> tuple[Var, ...]:
        return self.signature.params

    @property
    def results(self) -> tuple[Var, ...]:
        return tuple(r for r in self.signature.results if not r.is_error)

    @property
    def has_ret(self) -> bool:
        return self.ret is not None

    def promoted(self, scope: str, doc: str) -> "Func":
        """Copy of a free function recast as a constructor of ``scope``."""
        ctor = copy.copy(self)
        ctor.ctor = True
        ctor.doc = doc
        ctor.ctor_of = scope
        return ctor

    def doc_signature(self) -> str:
        args = ", ".join(f"{p.name} {p.sym.pytype}" for p in self.params)
        out = f"{self.name}({args})"
        if self.ret is not None:
            out += f" {self.ret.sym.pytype}"
        if self.err:
            out += " raises RuntimeError" if self.ret is None else ", raises RuntimeError"
        return out

    def __repr__(self):
        return f"Func({self.id})"


def split_results(results: list[Var], desc: str) -> tuple[Optional[Var], bool]:
    """Return the value result and whether the error convention applies."""
    if not results:
        return None, False
    if len(results) == 1:
        if results[0].is_error:
            return None, True
        return results[0], False
    if len(results) == 2:
        if not results[1].is_error:
            raise SignatureError("second result value must be of type error", decl=desc)
        return results[0], True
    raise SignatureError(f"too many results ({len(results)})", decl=desc)


def analyze(table: SymbolTable, pkg: PackageRef, name: str, raw: RawSignature,
            scope: Optional[str] = None, docs: Optional[DocIndex] = None,
            recv: Optional[Symbol] = None) -> Func:
    """Build the Func contract for a declared callable.

    Result arity: none; a single value or a single error; a value followed
    by an error. Anything else is rejected with SignatureError.
    """
    desc = f"{pkg.path}.{scope}.{name}" if scope else f"{pkg.path}.{name}"

    params = []
    for i, p in enumerate(raw.params):
        params.append(Var(p.name or f"arg{i}", table.classify(p.type, desc)))
    if raw.variadic and raw.params:
        elem = raw.params[-1].type.elem
        if not is_error_type(elem) and isinstance(underlying(elem), Interface):
            raise SignatureError("variadic interface parameters are not supported", decl=desc)
    results = []
    for i, r in enumerate(raw.results):
        results.append(Var(r.name or f"res{i}", table.classify(r.type, desc)))

    ret, err = split_results(results, desc)

    recv_var = Var("self", recv) if recv is not None else None
    sig = Signature(tuple(params), tuple(results), recv=recv_var, variadic=raw.variadic)
    doc = docs.lookup(scope, name) if docs is not None else ""
    fct = Func(pkg, sig, name, scope=scope, doc=doc, ret=ret, err=err)
    fct.stringer = scope is not None and is_stringer(name, raw)
    logger.debug("Analyzed %s: ret=%s err=%s", desc, ret.sym.id if ret else None, err)
    return fct


__all__ = ["Var", "Signature", "Func", "analyze", "split_results", "is_stringer"]
