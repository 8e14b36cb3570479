from refbind import logging as refbind_logging
from refbind.decl.manifest import PackageDecl, load_manifests
from refbind.errors import ClassificationError

from .package import Package, Struct
from .symtab import SymbolTable

logger = refbind_logging.get_logger(__name__)


class Binder:
    """One generation run: a symbol table and the packages bound against it.

    Nothing is shared between two Binder instances.
    """

    def __init__(self, config: dict | None = None):
        self.config = config or {}
        self.table = SymbolTable()
        self.packages: list[Package] = []

    def load(self, manifest_paths) -> list[Package]:
        return self.bind(load_manifests(manifest_paths))

    def bind(self, decls: list[PackageDecl]) -> list[Package]:
        """Process every package; any classification failure aborts the run."""
        claimed: set[str] = set()
        packages = []
        for decl in decls:
            try:
                packages.append(Package(decl, self.table).process(claimed))
            except ClassificationError as e:
                logger.error("Cannot bind %s: %s", e.decl or decl.path, e, extra={"decl": e.decl or decl.path})
                raise
        self.packages = packages
        logger.info("Bound %d package(s), %d symbol(s)", len(packages), len(self.table))
        return packages

    @property
    def library_name(self) -> str:
        configured = self.config.get("generate", {}).get("library_name", "")
        if configured:
            return configured
        if self.packages:
            return self.packages[0].name
        return "refbind"

    def describe(self) -> dict:
        """JSON-serialisable view of the bound model."""
        symbols = []
        for sym in self.table.symbols():
            symbols.append({
                "id": sym.id,
                "key": sym.key,
                "kind": sym.kind_names(),
                "needs_wrap": sym.needs_wrap,
                "protocols": ["stringer"] if sym.is_stringer else [],
            })

        packages = []
        for pkg in self.packages:
            types = []
            for t in pkg.types:
                entry = {
                    "name": t.name,
                    "id": t.id,
                    "by_value": t.by_value,
                    "ctors": [c.id for c in t.ctors],
                    "methods": [m.id for m in t.methods],
                    "generated": [f.id for f in t.generated_funcs()],
                }
                if isinstance(t, Struct):
                    entry["fields"] = [{"name": f.name, "type": f.sym.id, "index": f.index} for f in t.fields]
                types.append(entry)
            packages.append({
                "path": pkg.path,
                "name": pkg.name,
                "doc": pkg.doc,
                "types": types,
                "funcs": [{"id": f.id, "signature": f.doc_signature(), "err": f.err} for f in pkg.funcs],
                "consts": [{"id": c.id, "type": c.sym.id, "value": c.value} for c in pkg.consts],
                "vars": [{"id": v.id, "type": v.sym.id} for v in pkg.vars],
            })
        return {"library": self.library_name, "packages": packages, "symbols": symbols}
