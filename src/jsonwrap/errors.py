from typing import Any

class JsonWrapError(Exception):
    """Base class for everything this package raises on its own."""

class SerializationError(JsonWrapError):
    """A value in the graph has no JSON representation."""

class ReferenceLoopError(SerializationError):
    def __init__(self, value: Any):
        super().__init__(f"reference loop detected for {type(value).__qualname__} object")
        self.value = value

class ParseError(JsonWrapError, ValueError):
    def __init__(self, msg: str, *, source: str | None = None, line: int | None = None, column: int | None = None):
        where = f" ({source})" if source else ""
        super().__init__(f"malformed JSON{where}: {msg}")
        self.source = source
        self.line = line
        self.column = column

class TypeResolutionError(JsonWrapError):
    def __init__(self, type_name: str, reason: str = "unknown type"):
        super().__init__(f"cannot resolve type {type_name!r}: {reason}")
        self.type_name = type_name

class StructureError(JsonWrapError):
    """Well-formed JSON that cannot populate the requested type."""

class ResourceNotFoundError(JsonWrapError, LookupError):
    def __init__(self, name: str, where: str | None = None):
        msg = f"no bundled resource named {name!r}"
        if where:
            msg += f" in {where}"
        super().__init__(msg)
        self.name = name
