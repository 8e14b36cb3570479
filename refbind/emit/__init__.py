from .generator import EMITTERS, Generator
from .templates import (ClassContext, FunctionContext, HeaderContext,
                        PrototypeContext, WrapperContext, render_header,
                        render_wrapper)

__all__ = [
    'EMITTERS',
    'Generator',
    'ClassContext',
    'FunctionContext',
    'HeaderContext',
    'PrototypeContext',
    'WrapperContext',
    'render_header',
    'render_wrapper',
]
