from typing import Optional


class RefbindError(Exception):
    """Base class for every error raised by refbind."""


class ClassificationError(RefbindError, ValueError):
    """A declaration cannot be bound.

    Raised synchronously during a generation run; the whole run is aborted
    and nothing is written. ``decl`` names the offending declaration (its
    qualified name) when it is known.
    """

    def __init__(self, message: str, decl: Optional[str] = None):
        super().__init__(message)
        self.decl = decl

    def __str__(self) -> str:
        message = super().__str__()
        if self.decl and self.decl not in message:
            return f"{self.decl}: {message}"
        return message


class SignatureError(ClassificationError):
    """A callable's result list does not follow the supported conventions."""


class TypeExprError(ClassificationError):
    """A type expression in a manifest cannot be parsed or resolved."""


class ManifestError(RefbindError, ValueError):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class BridgeError(RefbindError, RuntimeError):
    pass


class BridgeCorruptionError(BridgeError):
    """The handle table was used inconsistently (double release, stale handle).

    Not recoverable: the binding layer that triggered it is broken.
    """


class HandleSpaceExhausted(BridgeError):
    pass


class ManagedCallError(RefbindError, RuntimeError):
    """A managed callable reported failure through its error result."""

    def __init__(self, message: str, func_id: Optional[str] = None):
        super().__init__(message)
        self.func_id = func_id
