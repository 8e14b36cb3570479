from .calls import CallBridge
from .handles import (DEFAULT_HANDLE_START, Address, HandleTable,
                      address_of)

__all__ = [
    'CallBridge',
    'DEFAULT_HANDLE_START',
    'Address',
    'HandleTable',
    'address_of',
]
