"""Declaration provider: JSON manifests describing a managed package.

A manifest supplies, per exported declaration, a name, a doc string and a
type signature. Loading runs in two phases over every manifest of the run:
named types are declared first, then every type expression is parsed, so
declarations may reference each other in any order and across packages.
"""

import json
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Optional

from jsonschema import Draft202012Validator

from refbind import logging as refbind_logging
from refbind.errors import ClassificationError, ManifestError

from .docs import DocIndex
from .parse import Scope, parse_signature, parse_type
from .types import Method, Named, PackageRef, Signature, Type

logger = refbind_logging.get_logger(__name__)


@dataclass
class TypeDecl:
    name: str
    named: Named
    doc: str = ""


@dataclass
class FuncDecl:
    name: str
    signature: Signature
    doc: str = ""


@dataclass
class ValueDecl:
    name: str
    type: Type
    doc: str = ""
    value: Any = None


@dataclass
class PackageDecl:
    ref: PackageRef
    doc: str = ""
    imports: list[str] = field(default_factory=list)
    types: list[TypeDecl] = field(default_factory=list)
    funcs: list[FuncDecl] = field(default_factory=list)
    consts: list[ValueDecl] = field(default_factory=list)
    vars: list[ValueDecl] = field(default_factory=list)
    docs: DocIndex = field(default_factory=DocIndex)
    source: Optional[str] = None

    @property
    def name(self) -> str:
        return self.ref.name

    @property
    def path(self) -> str:
        return self.ref.path


def load_schema_text() -> str:
    """Return the manifest schema JSON text from packaged resources."""
    try:
        schema_resource = resources.files("refbind.decl").joinpath("schema.json")
        with schema_resource.open("r", encoding="utf-8") as f:
            return f.read()
    except (FileNotFoundError, ModuleNotFoundError):
        pass

    fallback = Path(__file__).resolve().parent / "schema.json"
    if fallback.is_file():
        return fallback.read_text(encoding="utf-8")

    raise FileNotFoundError("Could not locate decl/schema.json")


@lru_cache(maxsize=1)
def _validator() -> Draft202012Validator:
    return Draft202012Validator(json.loads(load_schema_text()))


def validate_manifest(data: Any, source: str = "<manifest>") -> None:
    errors = sorted(_validator().iter_errors(data), key=lambda e: e.json_path)
    if not errors:
        return
    err = errors[0]
    location = err.json_path
    raise ManifestError(f"{source}: invalid manifest at {location}: {err.message}", path=location)


class ManifestLoader:
    """Collects manifests of one generation run and resolves them together."""

    def __init__(self):
        self._raw: list[tuple[str, dict]] = []

    def add(self, data: dict, source: str = "<manifest>") -> None:
        validate_manifest(data, source)
        for _, other in self._raw:
            if other["path"] == data["path"]:
                raise ManifestError(f"{source}: package {data['path']} loaded twice")
        self._raw.append((source, data))

    def add_file(self, path) -> None:
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ManifestError(f"{path}: not valid JSON: {exc}") from exc
        self.add(data, str(path))

    def load(self) -> list[PackageDecl]:
        refs: list[PackageRef] = []
        named: dict[str, dict[str, Named]] = {}

        # phase 1: declare every named type of every package
        for source, data in self._raw:
            ref = PackageRef(data["path"], data["name"])
            refs.append(ref)
            if ref.name in named:
                raise ManifestError(f"{source}: two packages named {ref.name!r} in one run")
            local: dict[str, Named] = {}
            for tdecl in data.get("types", []):
                if tdecl["name"] in local:
                    raise ManifestError(f"{source}: type {tdecl['name']} declared twice")
                local[tdecl["name"]] = Named(ref, tdecl["name"], doc=tdecl.get("doc", ""))
            named[ref.name] = local

        # phase 2: parse every expression against the complete set of names
        packages = []
        for (source, data), ref in zip(self._raw, refs):
            scope = Scope(local=named[ref.name], packages=named)
            packages.append(self._load_package(source, data, ref, scope))

        self._resolve_aliases([decl for pkg in packages for decl in pkg.types])
        logger.debug("Loaded %d package manifest(s)", len(packages))
        return packages

    def _load_package(self, source: str, data: dict, ref: PackageRef, scope: Scope) -> PackageDecl:
        doc_items: list[tuple[str, str, str]] = []
        pkg = PackageDecl(
            ref=ref,
            doc=data.get("doc", ""),
            imports=list(data.get("imports", [])),
            source=source,
        )

        for tdecl in data.get("types", []):
            name = tdecl["name"]
            qualified = f"{ref.path}.{name}"
            if tdecl.get("type_params"):
                raise ClassificationError("generic types cannot be bound", decl=qualified)
            target = scope.local[name]
            target.underlying = parse_type(tdecl["type"], scope, decl=qualified)
            for mdecl in tdecl.get("methods", []):
                mname = f"{qualified}.{mdecl['name']}"
                target.add_method(Method(
                    name=mdecl["name"],
                    signature=parse_signature(mdecl["signature"], scope, decl=mname),
                    doc=mdecl.get("doc", ""),
                    pointer_receiver=mdecl.get("pointer_receiver", False),
                ))
                doc_items.append((name, mdecl["name"], mdecl.get("doc", "")))
            pkg.types.append(TypeDecl(name, target, tdecl.get("doc", "")))
            doc_items.append(("", name, tdecl.get("doc", "")))

        for fdecl in data.get("funcs", []):
            qualified = f"{ref.path}.{fdecl['name']}"
            if fdecl.get("type_params"):
                raise ClassificationError("generic functions cannot be bound", decl=qualified)
            pkg.funcs.append(FuncDecl(
                name=fdecl["name"],
                signature=parse_signature(fdecl["signature"], scope, decl=qualified),
                doc=fdecl.get("doc", ""),
            ))
            doc_items.append(("", fdecl["name"], fdecl.get("doc", "")))

        for key, target in (("consts", pkg.consts), ("vars", pkg.vars)):
            for vdecl in data.get(key, []):
                qualified = f"{ref.path}.{vdecl['name']}"
                target.append(ValueDecl(
                    name=vdecl["name"],
                    type=parse_type(vdecl["type"], scope, decl=qualified),
                    doc=vdecl.get("doc", ""),
                    value=vdecl.get("value"),
                ))
                doc_items.append(("", vdecl["name"], vdecl.get("doc", "")))

        pkg.docs = DocIndex.from_items(doc_items)
        return pkg

    @staticmethod
    def _resolve_aliases(decls: list[TypeDecl]) -> None:
        """``type XX X`` takes X's underlying type; chains are followed."""
        done: set[str] = set()

        def resolve(target: Named, chain: list[str]) -> Type:
            key = target.key()
            if key in done:
                return target.underlying
            if key in chain:
                cycle = " -> ".join(chain + [key])
                raise ClassificationError(f"invalid recursive type definition {cycle}", decl=chain[0])
            under = target.underlying
            if isinstance(under, Named):
                if under.underlying is None:
                    raise ClassificationError(f"type {under.key()} is not declared in this run", decl=key)
                under = resolve(under, chain + [key])
                target.underlying = under
            done.add(key)
            return under

        for decl in decls:
            resolve(decl.named, [])


def load_manifests(paths) -> list[PackageDecl]:
    loader = ManifestLoader()
    for path in paths:
        loader.add_file(path)
    return loader.load()
