"""Parser for the Go-style type expressions carried by manifests."""

import re
from dataclasses import dataclass, field
from typing import Optional

from refbind.errors import TypeExprError

from .types import (UNIVERSE, Array, Field, Interface, Map, Named, Param,
                    Pointer, Signature, Slice, Struct, Type)

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<tag>`[^`]*`|"(?:[^"\\]|\\.)*")
  | (?P<ellipsis>\.\.\.)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<int>[0-9]+)
  | (?P<punct>[*\[\](){},;.])
    """,
    re.VERBOSE,
)

_END_OF_TYPE = {",", ")", ";", "}", "]", None}


@dataclass
class _Token:
    kind: str
    text: str
    pos: int


@dataclass
class Scope:
    """Names visible to a type expression.

    ``local`` holds the declaring package's named types, ``packages`` maps a
    package name to the named types of another package loaded in the run.
    """

    local: dict[str, Named] = field(default_factory=dict)
    packages: dict[str, dict[str, Named]] = field(default_factory=dict)

    def lookup(self, name: str) -> Optional[Type]:
        if name in self.local:
            return self.local[name]
        return UNIVERSE.get(name)

    def lookup_qualified(self, pkg: str, name: str) -> Optional[Type]:
        return self.packages.get(pkg, {}).get(name)


def _tokenize(expr: str, decl: Optional[str]) -> list[_Token]:
    tokens = []
    pos = 0
    while pos < len(expr):
        m = _TOKEN_RE.match(expr, pos)
        if m is None:
            raise TypeExprError(
                f"unexpected character {expr[pos]!r} at offset {pos} in {expr!r}", decl)
        kind = m.lastgroup
        if kind != "ws":
            tokens.append(_Token(kind, m.group(), pos))
        pos = m.end()
    return tokens


class TypeExprParser:
    def __init__(self, expr: str, scope: Scope, decl: Optional[str] = None):
        self.expr = expr
        self.scope = scope
        self.decl = decl
        self.tokens = _tokenize(expr, decl)
        self.index = 0

    # -- token helpers --

    def _peek(self, offset: int = 0) -> Optional[str]:
        i = self.index + offset
        if i < len(self.tokens):
            return self.tokens[i].text
        return None

    def _peek_kind(self, offset: int = 0) -> Optional[str]:
        i = self.index + offset
        if i < len(self.tokens):
            return self.tokens[i].kind
        return None

    def _next(self) -> _Token:
        if self.index >= len(self.tokens):
            self._fail("unexpected end of expression")
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _expect(self, text: str) -> _Token:
        tok = self._next()
        if tok.text != text:
            self._fail(f"expected {text!r}, found {tok.text!r}", tok.pos)
        return tok

    def _fail(self, message: str, pos: Optional[int] = None):
        if pos is None:
            pos = self.tokens[self.index].pos if self.index < len(self.tokens) else len(self.expr)
        raise TypeExprError(f"{message} at offset {pos} in {self.expr!r}", self.decl)

    # -- entry points --

    def parse_type_expr(self) -> Type:
        t = self.parse_type()
        if self.index != len(self.tokens):
            self._fail(f"unexpected {self._peek()!r}")
        return t

    def parse_signature_expr(self) -> Signature:
        self._expect("func")
        sig = self.parse_signature()
        if self.index != len(self.tokens):
            self._fail(f"unexpected {self._peek()!r}")
        return sig

    # -- grammar --

    def parse_type(self) -> Type:
        tok = self._next()
        text = tok.text
        if text == "*":
            return Pointer(self.parse_type())
        if text == "[":
            if self._peek() == "]":
                self._next()
                return Slice(self.parse_type())
            length = self._next()
            if length.kind != "int":
                self._fail("array length must be an integer literal", length.pos)
            self._expect("]")
            return Array(int(length.text), self.parse_type())
        if text == "(":
            t = self.parse_type()
            self._expect(")")
            return t
        if tok.kind != "ident":
            self._fail(f"unexpected {text!r}", tok.pos)
        if text == "map":
            self._expect("[")
            key = self.parse_type()
            self._expect("]")
            return Map(key, self.parse_type())
        if text == "func":
            return self.parse_signature()
        if text == "struct":
            return self.parse_struct()
        if text == "interface":
            return self.parse_interface()
        if text == "chan":
            self._fail("channel types are not supported", tok.pos)
        return self._finish_type_name(tok)

    def _finish_type_name(self, tok: _Token) -> Type:
        if self._peek() == ".":
            self._next()
            name = self._next()
            if name.kind != "ident":
                self._fail("expected identifier after '.'", name.pos)
            resolved = self.scope.lookup_qualified(tok.text, name.text)
            if resolved is None:
                self._fail(f"unknown type {tok.text}.{name.text}", tok.pos)
        else:
            resolved = self.scope.lookup(tok.text)
            if resolved is None:
                self._fail(f"unknown type {tok.text}", tok.pos)
        if self._peek() == "[" and self._peek(1) != "]":
            self._fail("generic instantiations are not supported", self.tokens[self.index].pos)
        return resolved

    def parse_struct(self) -> Struct:
        self._expect("{")
        fields: list[Field] = []
        while self._peek() != "}":
            if self._peek() == ";":
                self._next()
                continue
            fields.extend(self._parse_field_decl())
            if self._peek_kind() == "tag":
                self._next()
            if self._peek() not in (";", "}"):
                self._fail(f"unexpected {self._peek()!r} in struct")
        self._expect("}")
        return Struct(tuple(fields))

    def _parse_field_decl(self) -> list[Field]:
        if self._peek() == "*":
            self._next()
            base = self._next()
            t = Pointer(self._finish_type_name(base))
            # embedded fields are named after the (unqualified) type name
            return [Field(self._peek(-1), t, embedded=True)]
        first = self._next()
        if first.kind != "ident":
            self._fail(f"unexpected {first.text!r} in struct", first.pos)
        if self._peek() in (";", "}") or self._peek_kind() == "tag":
            return [Field(first.text, self._finish_type_name(first), embedded=True)]
        if self._peek() == ".":
            t = self._finish_type_name(first)
            return [Field(self._peek(-1), t, embedded=True)]
        names = [first.text]
        while self._peek() == ",":
            self._next()
            names.append(self._next().text)
        t = self.parse_type()
        return [Field(n, t) for n in names]

    def parse_interface(self) -> Interface:
        self._expect("{")
        if self._peek() != "}":
            self._fail("only the empty interface is supported")
        self._expect("}")
        return Interface()

    def parse_signature(self) -> Signature:
        self._expect("(")
        params, variadic = self._parse_params(allow_variadic=True)
        results: tuple[Param, ...] = ()
        nxt = self._peek()
        if nxt == "(":
            self._next()
            results, _ = self._parse_params(allow_variadic=False)
        elif nxt not in _END_OF_TYPE:
            results = (Param("", self.parse_type()),)
        return Signature(params, results, variadic)

    def _parse_params(self, allow_variadic: bool) -> tuple[tuple[Param, ...], bool]:
        # entries are (name, type) with either part possibly pending; Go
        # groups "a, b int" so bare identifiers become names once any entry
        # is named.
        entries: list[tuple[Optional[str], Optional[Type], Optional[_Token]]] = []
        variadic = False
        while self._peek() != ")":
            if variadic:
                self._fail("variadic parameter must be last")
            tok_kind = self._peek_kind()
            nxt = self._peek(1)
            if tok_kind == "ident" and nxt in (",", ")"):
                entries.append((None, None, self._next()))
            elif tok_kind == "ident" and nxt not in (".", None) and self._peek() not in ("map", "func", "struct", "interface", "chan"):
                name = self._next().text
                t, variadic = self._parse_param_type(allow_variadic)
                entries.append((name, t, None))
            else:
                t, variadic = self._parse_param_type(allow_variadic)
                entries.append((None, t, None))
            if self._peek() == ",":
                self._next()
            elif self._peek() != ")":
                self._fail(f"unexpected {self._peek()!r} in parameter list")
        self._expect(")")

        named = any(name is not None for name, _, _ in entries)
        params: list[Param] = []
        pending: list[str] = []
        for name, t, tok in entries:
            if tok is not None:
                if named:
                    pending.append(tok.text)
                else:
                    params.append(Param("", self._finish_type_name_at(tok)))
                continue
            if named and name is None:
                self._fail("mixed named and unnamed parameters")
            for pname in pending:
                params.append(Param(pname, t))
            pending = []
            params.append(Param(name or "", t))
        if pending:
            self._fail("parameter names without a type")
        return tuple(params), variadic

    def _finish_type_name_at(self, tok: _Token) -> Type:
        resolved = self.scope.lookup(tok.text)
        if resolved is None:
            self._fail(f"unknown type {tok.text}", tok.pos)
        return resolved

    def _parse_param_type(self, allow_variadic: bool) -> tuple[Type, bool]:
        if self._peek_kind() == "ellipsis":
            tok = self._next()
            if not allow_variadic:
                self._fail("variadic results are not allowed", tok.pos)
            return Slice(self.parse_type()), True
        return self.parse_type(), False


def parse_type(expr: str, scope: Scope, decl: Optional[str] = None) -> Type:
    return TypeExprParser(expr, scope, decl).parse_type_expr()


def parse_signature(expr: str, scope: Scope, decl: Optional[str] = None) -> Signature:
    return TypeExprParser(expr, scope, decl).parse_signature_expr()
