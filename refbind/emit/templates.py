from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

_TEMPLATE_DIR = Path(__file__).with_name("templates")


@lru_cache(maxsize=None)
def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(_TEMPLATE_DIR),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def _normalize_lines(lines: Iterable[str]) -> tuple[str, ...]:
    normalized: list[str] = []
    for entry in lines:
        if entry is None:
            continue
        parts = str(entry).splitlines()
        if not parts:
            normalized.append("")
            continue
        normalized.extend(parts)
    return tuple(normalized)


@dataclass(frozen=True)
class PrototypeContext:
    """One C entry point of the header."""

    name: str
    c_ret: str
    c_params: str
    comment: str

    def as_template_args(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "c_ret": self.c_ret,
            "c_params": self.c_params,
            "comment": self.comment,
        }


@dataclass(frozen=True)
class HeaderContext:
    """Template inputs for the C header."""

    guard: str
    library: str
    typedefs: tuple[tuple[str, str], ...]
    prototypes: tuple[dict[str, Any], ...]

    @classmethod
    def create(
        cls,
        *,
        library: str,
        guard: str,
        typedefs: Iterable[tuple[str, str]],
        prototypes: Iterable[PrototypeContext],
    ) -> "HeaderContext":
        return cls(
            guard=guard,
            library=library,
            typedefs=tuple(typedefs),
            prototypes=tuple(p.as_template_args() for p in prototypes),
        )

    def as_template_args(self) -> dict[str, Any]:
        return {
            "guard": self.guard,
            "library": self.library,
            "typedefs": self.typedefs,
            "prototypes": self.prototypes,
        }


@dataclass(frozen=True)
class FunctionContext:
    """A host-side function: its def line, docstring and body."""

    py_name: str
    params: tuple[str, ...]
    doc: tuple[str, ...]
    body: tuple[str, ...]

    @classmethod
    def create(
        cls,
        *,
        py_name: str,
        params: Sequence[str],
        doc: Iterable[str],
        body: Iterable[str],
    ) -> "FunctionContext":
        return cls(
            py_name=py_name,
            params=tuple(params),
            doc=_normalize_lines(doc),
            body=_normalize_lines(body),
        )

    def as_template_args(self) -> dict[str, Any]:
        return {
            "py_name": self.py_name,
            "params": ", ".join(self.params),
            "doc": self.doc,
            "body": self.body,
        }


@dataclass(frozen=True)
class ClassContext:
    """A host-side shadow class for one bound type."""

    name: str
    base: str
    doc: tuple[str, ...]
    init: Optional[dict[str, Any]]
    str_fn: Optional[dict[str, Any]]
    ctors: tuple[dict[str, Any], ...]
    properties: tuple[dict[str, Any], ...]
    methods: tuple[dict[str, Any], ...]

    @classmethod
    def create(
        cls,
        *,
        name: str,
        base: str,
        doc: Iterable[str],
        init: Optional[FunctionContext],
        str_fn: Optional[FunctionContext],
        ctors: Iterable[FunctionContext],
        properties: Iterable[tuple[str, FunctionContext, FunctionContext]],
        methods: Iterable[FunctionContext],
    ) -> "ClassContext":
        return cls(
            name=name,
            base=base,
            doc=_normalize_lines(doc),
            init=init.as_template_args() if init else None,
            str_fn=str_fn.as_template_args() if str_fn else None,
            ctors=tuple(c.as_template_args() for c in ctors),
            properties=tuple(
                {"name": pname, "getter": g.as_template_args(), "setter": s.as_template_args()}
                for pname, g, s in properties
            ),
            methods=tuple(m.as_template_args() for m in methods),
        )

    def as_template_args(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "base": self.base,
            "doc": self.doc,
            "init": self.init,
            "str_fn": self.str_fn,
            "ctors": self.ctors,
            "properties": self.properties,
            "methods": self.methods,
        }


@dataclass(frozen=True)
class WrapperContext:
    """Template inputs for one host-side package module."""

    module: str
    library: str
    doc: tuple[str, ...]
    bindings: tuple[str, ...]
    classes: tuple[dict[str, Any], ...]
    functions: tuple[dict[str, Any], ...]

    @classmethod
    def create(
        cls,
        *,
        module: str,
        library: str,
        doc: Iterable[str],
        bindings: Iterable[str],
        classes: Iterable[ClassContext],
        functions: Iterable[FunctionContext],
    ) -> "WrapperContext":
        return cls(
            module=module,
            library=library,
            doc=_normalize_lines(doc),
            bindings=_normalize_lines(bindings),
            classes=tuple(c.as_template_args() for c in classes),
            functions=tuple(f.as_template_args() for f in functions),
        )

    def as_template_args(self) -> dict[str, Any]:
        return {
            "module": self.module,
            "library": self.library,
            "doc": self.doc,
            "bindings": self.bindings,
            "classes": self.classes,
            "functions": self.functions,
        }


def render_header(context: HeaderContext) -> str:
    template = _get_env().get_template("bridge.h.j2")
    return template.render(context.as_template_args())


def render_wrapper(context: WrapperContext) -> str:
    template = _get_env().get_template("wrapper.py.j2")
    return template.render(context.as_template_args())
