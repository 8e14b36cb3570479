from enum import Enum, auto


class EntityKind(Enum):
    # declaration order is emission order
    TYPE = auto()
    STRUCT = auto()
    CONSTRUCTOR = auto()
    FUNCTION = auto()
    CONSTANT = auto()
    VARIABLE = auto()
