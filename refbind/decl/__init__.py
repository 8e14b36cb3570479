from .docs import DocIndex
from .manifest import (FuncDecl, ManifestLoader, PackageDecl, TypeDecl,
                       ValueDecl, load_manifests, validate_manifest)
from .parse import Scope, parse_signature, parse_type
from .types import (EMPTY_INTERFACE, ERROR, STRING, UNIVERSE, Array, Basic,
                    Field, Interface, Map, Method, Named, PackageRef, Param,
                    Pointer, Signature, Slice, Struct, Type, is_error_type)

__all__ = [
    'DocIndex',
    'FuncDecl',
    'ManifestLoader',
    'PackageDecl',
    'TypeDecl',
    'ValueDecl',
    'load_manifests',
    'validate_manifest',
    'Scope',
    'parse_signature',
    'parse_type',
    'EMPTY_INTERFACE',
    'ERROR',
    'STRING',
    'UNIVERSE',
    'Array',
    'Basic',
    'Field',
    'Interface',
    'Map',
    'Method',
    'Named',
    'PackageRef',
    'Param',
    'Pointer',
    'Signature',
    'Slice',
    'Struct',
    'Type',
    'is_error_type',
]
