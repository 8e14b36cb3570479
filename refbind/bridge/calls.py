"""Call-convention translation between foreign call sites and managed callables."""

import operator
from typing import Any, Callable, Optional

from refbind import logging as refbind_logging
from refbind.bind.package import Const, StructField, Type, Variable
from refbind.bind.signature import Func
from refbind.errors import ManagedCallError

from .handles import HandleTable

logger = refbind_logging.get_logger(__name__)


class CallBridge:
    """Invoke managed callables on behalf of the foreign side.

    Arguments of wrapped types arrive as handles and are resolved before the
    call; a wrapped result is acquired exactly once and returned as a handle.
    A non-None failure indicator becomes a ManagedCallError.
    """

    def __init__(self, table: HandleTable):
        self.table = table

    def invoke(self, func: Func, target: Callable[..., Any], *args: Any) -> Any:
        slots = list(func.params)
        if func.signature.recv is not None:
            slots.insert(0, func.signature.recv)
        if len(args) != len(slots):
            raise TypeError(f"{func.id} takes {len(slots)} argument(s), got {len(args)}")

        managed_args = [
            self.table.resolve(arg) if slot.needs_wrap else arg
            for slot, arg in zip(slots, args)
        ]
        result = target(*managed_args)

        value = result
        if func.err:
            if func.ret is not None:
                value, err = result
            else:
                value, err = None, result
            if err is not None:
                logger.debug("%s reported failure: %s", func.desc, err, extra={"func_id": func.id})
                if isinstance(err, BaseException):
                    raise ManagedCallError(str(err), func_id=func.id) from err
                raise ManagedCallError(str(err), func_id=func.id)

        if func.ret is None:
            return None
        if func.ret.needs_wrap and value is not None:
            return self.table.acquire(value)
        return value

    def release_proxy(self, handle: int) -> None:
        """Called once when a foreign-side proxy is destroyed."""
        self.table.release(handle)

    def get_field(self, field: StructField, handle: int) -> Any:
        return self.invoke(field.getter, lambda obj: getattr(obj, field.name), handle)

    def set_field(self, field: StructField, handle: int, value: Any) -> None:
        self.invoke(field.setter, lambda obj, v: setattr(obj, field.name, v), handle, value)

    def get_value(self, decl: Const | Variable, namespace: Any) -> Any:
        """Read a package-level constant or variable from ``namespace``."""
        return self.invoke(decl.getter, lambda: getattr(namespace, decl.name))

    def set_value(self, decl: Variable, namespace: Any, value: Any) -> None:
        self.invoke(decl.setter, lambda v: setattr(namespace, decl.name, v), value)

    def length(self, t: Type, handle: int) -> int:
        return self.invoke(self._entry(t, t.len, "len"), len, handle)

    def get_item(self, t: Type, handle: int, key: Any) -> Any:
        return self.invoke(self._entry(t, t.item, "item"), lambda obj, k: obj[k], handle, key)

    def set_item(self, t: Type, handle: int, key: Any, value: Any) -> None:
        self.invoke(self._entry(t, t.set_item, "set_item"), operator.setitem, handle, key, value)

    def append(self, t: Type, handle: int, value: Any) -> None:
        """Append in place; the handle keeps naming the same slice."""
        self.invoke(self._entry(t, t.append, "append"), lambda obj, v: obj.append(v), handle, value)

    def call(self, t: Type, handle: int, *args: Any) -> Any:
        return self.invoke(self._entry(t, t.call, "call"), lambda fn, *a: fn(*a), handle, *args)

    @staticmethod
    def _entry(t: Type, func: Optional[Func], name: str) -> Func:
        if func is None:
            raise TypeError(f"{t.name} has no {name} entry point")
        return func
