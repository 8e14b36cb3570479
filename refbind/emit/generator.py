"""Render the bound model into a C header and host-side wrapper modules."""

import keyword
import os

from refbind import logging as refbind_logging
from refbind import utils
from refbind.bind.binder import Binder
from refbind.bind.package import Package, Struct, Type
from refbind.bind.signature import Func, Var
from refbind.bind.symtab import Symbol

from .templates import (ClassContext, FunctionContext, HeaderContext,
                        PrototypeContext, WrapperContext, render_header,
                        render_wrapper)

logger = refbind_logging.get_logger(__name__)

EMITTERS = ("header", "wrapper")

_C_KEYWORDS = frozenset({
    "auto", "char", "double", "enum", "extern", "float", "int", "long",
    "register", "short", "signed", "sizeof", "static", "typedef", "union",
    "unsigned", "void", "volatile", "while", "do", "inline", "restrict",
    "const", "default", "break", "case", "continue", "else", "for", "goto",
    "if", "return", "struct", "switch",
})

_CTYPES = {
    "uint8_t": "ctypes.c_uint8",
    "int8_t": "ctypes.c_int8",
    "int16_t": "ctypes.c_int16",
    "int32_t": "ctypes.c_int32",
    "int64_t": "ctypes.c_int64",
    "uint16_t": "ctypes.c_uint16",
    "uint32_t": "ctypes.c_uint32",
    "uint64_t": "ctypes.c_uint64",
    "uintptr_t": "ctypes.c_size_t",
    "float": "ctypes.c_float",
    "double": "ctypes.c_double",
    "float _Complex": "_Complex64",
    "double _Complex": "_Complex128",
    "char*": "ctypes.c_char_p",
    "refbind_handle": "ctypes.c_int64",
}

_PY_BASES = {"bool": "int", "int": "int", "float": "float", "complex": "complex", "str": "str"}


def _c_comment(text: str) -> str:
    return " ".join(text.split()).replace("*/", "* /")


def _docstring_lines(*parts: str) -> list[str]:
    lines: list[str] = []
    for part in parts:
        if not part:
            continue
        if lines:
            lines.append("")
        escaped = part.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
        lines.extend(escaped.strip().splitlines())
    return lines


def _c_name(name: str) -> str:
    return f"{name}_" if name in _C_KEYWORDS else name


def _py_name(name: str) -> str:
    return f"{name}_" if keyword.iskeyword(name) else name


def _c_slots(func: Func) -> list[Var]:
    slots = list(func.params)
    if func.signature.recv is not None:
        slots.insert(0, func.signature.recv)
    return slots


def _spelling(sym: Symbol) -> str:
    """C spelling of a parameter or result: handle typedef or scalar."""
    if sym.needs_wrap or sym.is_named and not sym.is_error:
        return sym.cgoname
    return sym.ctype


class Generator:
    """Renders every requested file in memory, then writes them together."""

    def __init__(self, config: dict | None = None, emit=None):
        gen_cfg = (config or {}).get("generate", {})
        selected = tuple(emit if emit is not None else gen_cfg.get("emit", EMITTERS))
        unknown = [name for name in selected if name not in EMITTERS]
        if unknown:
            raise ValueError(f"unknown emitter(s): {', '.join(unknown)}; choose from {', '.join(EMITTERS)}")
        self.emit = selected
        self._module: str | None = None
        self._classes: dict[str, tuple[str, str]] = {}

    def render(self, binder: Binder) -> dict[str, str]:
        library = utils.sanitize_identifier(binder.library_name)
        files: dict[str, str] = {}
        if "header" in self.emit:
            files[f"{library}.h"] = render_header(self._header_context(binder, library))
        if "wrapper" in self.emit:
            classes = self._class_names(binder)
            for pkg in binder.packages:
                files[f"{pkg.name}.py"] = render_wrapper(self._wrapper_context(pkg, library, classes))
        return files

    def generate(self, binder: Binder, output_dir) -> list[str]:
        files = self.render(binder)
        written = utils.write_files(output_dir, files)
        logger.info("Wrote %d file(s) to %s", len(written), os.path.abspath(output_dir))
        return written

    ######## header ########
    def _header_context(self, binder: Binder, library: str) -> HeaderContext:
        typedefs = []
        for sym in binder.table.symbols():
            if sym.is_error or not (sym.needs_wrap or sym.is_named):
                continue
            typedefs.append((sym.ctype, sym.cgoname))

        prototypes = []
        for pkg in binder.packages:
            for func in pkg.all_funcs():
                prototypes.append(self._prototype(func))
        return HeaderContext.create(
            library=library,
            guard=f"REFBIND_{library.upper()}_H",
            typedefs=typedefs,
            prototypes=prototypes,
        )

    @staticmethod
    def _prototype(func: Func) -> PrototypeContext:
        params = [f"{_spelling(v.sym)} {_c_name(v.name)}" for v in _c_slots(func)]
        if func.err:
            params.append("char** err")
        comment = func.doc or ("" if func.generated else func.desc)
        return PrototypeContext(
            name=func.id,
            c_ret=_spelling(func.ret.sym) if func.ret is not None else "void",
            c_params=", ".join(params) or "void",
            comment=_c_comment(comment),
        )

    ######## wrapper ########
    @staticmethod
    def _class_names(binder: Binder) -> dict[str, tuple[str, str]]:
        """Symbol key -> (module, class name) for every bound type."""
        out = {}
        for pkg in binder.packages:
            for t in pkg.types:
                out[t.sym.key] = (pkg.name, t.name)
        return out

    def _wrapper_context(self, pkg: Package, library: str, classes: dict) -> WrapperContext:
        self._module = pkg.name
        self._classes = classes
        bindings = []
        for func in pkg.all_funcs():
            argtypes = [self._ctype_of(v.sym) for v in _c_slots(func)]
            if func.err:
                argtypes.append("ctypes.POINTER(ctypes.c_char_p)")
            restype = self._ctype_of(func.ret.sym) if func.ret is not None else "None"
            bindings.append(f"_lib.{func.id}.argtypes = [{', '.join(argtypes)}]")
            bindings.append(f"_lib.{func.id}.restype = {restype}")

        class_contexts = [self._class_context(t) for t in pkg.types]
        functions = []
        for func in pkg.funcs:
            functions.append(self._function(func, _py_name(func.name), [_py_name(p.name) for p in func.params]))
        for const in pkg.consts:
            functions.append(self._function(const.getter, f"get_{const.name}", [], doc=const.doc))
        for var in pkg.vars:
            functions.append(self._function(var.getter, f"get_{var.name}", [], doc=var.doc))
            functions.append(self._function(var.setter, f"set_{var.name}", ["value"], doc=var.doc))

        return WrapperContext.create(
            module=pkg.name,
            library=library,
            doc=_docstring_lines(pkg.doc),
            bindings=bindings,
            classes=class_contexts,
            functions=functions,
        )

    def _class_context(self, t: Type) -> ClassContext:
        by_value = t.by_value
        base = "_Proxy"
        if by_value:
            base = _PY_BASES.get(self._basic_pytype(t.sym), "object")

        init = None
        if t.new is not None:
            init = FunctionContext.create(
                py_name="__init__",
                params=["self", "handle=None"],
                doc=[],
                body=[
                    "if handle is None:",
                    f"    handle = _lib.{t.new.id}()",
                    "_Proxy.__init__(self, handle)",
                ],
            )
        str_fn = None
        if t.str is not None:
            str_fn = self._function(t.str, "__str__", ["self"], doc="")

        ctors = []
        for ctor in t.ctors:
            params = ["cls"] + [_py_name(p.name) for p in ctor.params]
            ctors.append(self._function(ctor, ctor.name, params))

        properties = []
        if isinstance(t, Struct):
            for field in t.fields:
                getter = self._function(field.getter, field.name, ["self"], doc="")
                setter = self._function(field.setter, field.name, ["self", "value"], doc="")
                properties.append((field.name, getter, setter))

        methods = []
        if t.len is not None:
            methods.append(self._function(t.len, "__len__", ["self"], doc=""))
        if t.item is not None:
            methods.append(self._function(t.item, "__getitem__", ["self", "key"], doc=""))
        if t.set_item is not None:
            methods.append(self._function(t.set_item, "__setitem__", ["self", "key", "value"], doc=""))
        if t.append is not None:
            methods.append(self._function(t.append, "append", ["self", "value"], doc=""))
        if t.call is not None:
            params = ["self"] + [p.name for p in t.call.params[1:]]
            methods.append(self._function(t.call, "__call__", params, doc=""))
        for meth in t.methods:
            params = ["self"] + [_py_name(p.name) for p in meth.params]
            methods.append(self._function(meth, _py_name(meth.name), params))

        return ClassContext.create(
            name=t.name,
            base=base,
            doc=_docstring_lines(t.doc),
            init=init,
            str_fn=str_fn,
            ctors=ctors,
            properties=properties,
            methods=methods,
        )

    @staticmethod
    def _basic_pytype(sym: Symbol) -> str:
        basic = sym.basic
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

    def _function(self, func: Func, py_name: str, params: list[str], doc: str | None = None) -> FunctionContext:
        slots = _c_slots(func)
        # params may carry a leading cls/self that is not a C argument
        names = params[len(params) - len(slots):] if slots else []
        args = [self._to_c(v.sym, name) for v, name in zip(slots, names)]

        body = []
        if func.err:
            body.append("err = ctypes.c_char_p()")
            args.append("ctypes.byref(err)")
        call = f"_lib.{func.id}({', '.join(args)})"
        if func.ret is not None:
            body.append(f"ret = {call}")
        else:
            body.append(call)
        if func.err:
            body.append("if err.value is not None:")
            body.append("    raise RuntimeError(err.value.decode(\"utf-8\"))")
        if func.ret is not None:
            body.append(f"return {self._from_c(func.ret.sym, 'ret')}")

        text = func.doc if doc is None else doc
        doc_lines = _docstring_lines(text, func.doc_signature() if not func.generated else "")
        return FunctionContext.create(py_name=py_name, params=params, doc=doc_lines, body=body)

    def _ctype_of(self, sym: Symbol) -> str:
        return _CTYPES[sym.ctype]

    def _to_c(self, sym: Symbol, name: str) -> str:
        if sym.needs_wrap:
            return f"{name}._handle"
        if sym.is_error:
            return f"None if {name} is None else str({name}).encode(\"utf-8\")"
        pytype = self._basic_pytype(sym)
        if pytype == "str":
            return f"{name}.encode(\"utf-8\")"
        if pytype == "complex":
            struct = _CTYPES[sym.ctype]
            return f"{struct}(complex({name}).real, complex({name}).imag)"
        if pytype == "bool":
            return f"int(bool({name}))"
        return name

    def _from_c(self, sym: Symbol, name: str) -> str:
        if sym.needs_wrap:
            target = sym.elem if sym.is_pointer and not sym.is_named else sym
            module, cls = self._classes.get(target.key, (None, "_Proxy"))
            if module is not None and module != self._module:
                return f"_Proxy({name})"
            return f"{cls}({name})"
        if sym.is_error:
            return f"None if {name} is None else {name}.decode(\"utf-8\")"
        pytype = self._basic_pytype(sym)
        if pytype == "str":
            value = f"{name}.decode(\"utf-8\")"
        elif pytype == "complex":
            value = f"complex({name}.re, {name}.im)"
        elif pytype == "bool":
            value = f"bool({name})"
        else:
            value = name
        if sym.is_named:
            _, cls = self._classes.get(sym.key, (None, None))
            if cls is not None and self._classes[sym.key][0] == self._module:
                return f"{cls}({value})"
        return value
