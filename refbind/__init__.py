from refbind.bind import Binder
from refbind.bridge import CallBridge, HandleTable
from refbind.emit import Generator
from refbind.errors import (BridgeCorruptionError, ClassificationError,
                            ManagedCallError, ManifestError, RefbindError,
                            SignatureError)

__all__ = [
    'Binder',
    'CallBridge',
    'HandleTable',
    'Generator',
    'BridgeCorruptionError',
    'ClassificationError',
    'ManagedCallError',
    'ManifestError',
    'RefbindError',
    'SignatureError',
]
