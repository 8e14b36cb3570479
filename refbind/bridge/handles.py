"""Reference bridge: managed objects <-> integer handles held by the foreign side.

While a handle is outstanding its entry keeps a strong reference to the
object, so the managed collector cannot reclaim it. Handles are never
reused within one table.
"""

import os
import threading
from typing import Any, NewType

from refbind import logging as refbind_logging
from refbind.errors import BridgeCorruptionError, HandleSpaceExhausted

logger = refbind_logging.get_logger(__name__)

Address = NewType("Address", int)

INT64_MIN = -(2 ** 63)
DEFAULT_HANDLE_START = -24
ON_CORRUPTION_CHOICES = ("raise", "abort")


def address_of(obj: Any) -> Address:
    return Address(id(obj))


class _Entry:
    __slots__ = ("handle", "count", "obj")

    def __init__(self, handle: int, obj: Any):
        self.handle = handle
        self.count = 1
        self.obj = obj


class HandleTable:
    """Reference-counted handle registry shared by every thread of a process."""

    def __init__(self, start: int = DEFAULT_HANDLE_START, on_corruption: str = "raise"):
        if start >= 0:
            raise ValueError(f"handle_start must be negative, got {start}")
        if on_corruption not in ON_CORRUPTION_CHOICES:
            raise ValueError(f"on_corruption must be one of {ON_CORRUPTION_CHOICES}, got {on_corruption!r}")
        self._lock = threading.Lock()
        self._by_address: dict[Address, _Entry] = {}
        self._by_handle: dict[int, Address] = {}
        self._next = start
        self.on_corruption = on_corruption

    @classmethod
    def from_config(cls, config: dict) -> "HandleTable":
        bridge_cfg = config.get("bridge", {})
        return cls(
            start=int(bridge_cfg.get("handle_start", DEFAULT_HANDLE_START)),
            on_corruption=bridge_cfg.get("on_corruption", "raise"),
        )

    def acquire(self, obj: Any) -> int:
        """Register one more foreign reference to ``obj`` and return its handle."""
        addr = address_of(obj)
        with self._lock:
            entry = self._by_address.get(addr)
            if entry is not None:
                entry.count += 1
                return entry.handle
            handle = self._next
            if handle < INT64_MIN:
                exhausted = True
            else:
                exhausted = False
                self._next -= 1
                self._by_address[addr] = _Entry(handle, obj)
                self._by_handle[handle] = addr
        if exhausted:
            raise HandleSpaceExhausted("no handles left in the signed 64-bit range")
        return handle

    def release(self, key: int) -> None:
        """Drop one foreign reference.

        Negative keys are handles, non-negative keys are addresses. The entry
        disappears when its count reaches zero.
        """
        with self._lock:
            if key < 0:
                addr = self._by_handle.get(key)
            else:
                addr = Address(key)
            entry = self._by_address.get(addr) if addr is not None else None
            if entry is not None:
                entry.count -= 1
                if entry.count == 0:
                    del self._by_address[addr]
                    del self._by_handle[entry.handle]
        if entry is None:
            self._corrupted(f"release of unknown reference {key}", key)

    def resolve(self, handle: int) -> Any:
        with self._lock:
            addr = self._by_handle.get(handle)
            entry = self._by_address.get(addr) if addr is not None else None
            obj = entry.obj if entry is not None else None
        if entry is None:
            self._corrupted(f"use of unknown handle {handle}", handle)
        return obj

    def count(self, key: int) -> int:
        """Outstanding references for a handle or address; 0 if untracked."""
        with self._lock:
            addr = self._by_handle.get(key) if key < 0 else Address(key)
            entry = self._by_address.get(addr) if addr is not None else None
            return entry.count if entry is not None else 0

    def snapshot(self) -> dict[int, int]:
        """``handle -> count`` for every live entry."""
        with self._lock:
            return {e.handle: e.count for e in self._by_address.values()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_address)

    def __contains__(self, key: int) -> bool:
        return self.count(key) > 0

    def _corrupted(self, message: str, key: int) -> None:
        logger.critical("Handle table corrupted: %s", message, extra={"handle": key})
        if self.on_corruption == "abort":
            os.abort()
        raise BridgeCorruptionError(message)
