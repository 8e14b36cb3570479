from .binder import Binder
from .package import Const, Package, Struct, StructField, Type, Variable
from .signature import Func, Signature, Var, analyze
from .symtab import Protocol, Symbol, SymbolKind, SymbolTable, is_stringer

__all__ = [
    'Binder',
    'Const',
    'Package',
    'Struct',
    'StructField',
    'Type',
    'Variable',
    'Func',
    'Signature',
    'Var',
    'analyze',
    'Protocol',
    'Symbol',
    'SymbolKind',
    'SymbolTable',
    'is_stringer',
]
