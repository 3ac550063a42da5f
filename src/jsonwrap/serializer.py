"""
Object graph <-> JSON tree conversion.

Objects (dataclasses, pydantic models and plain class instances) are written
as JSON objects whose first key names their concrete type, so a field declared
as a base class is restored as the subclass that was saved. Reference loops
are broken while walking the graph instead of being left to the json module.
"""

import collections.abc
import dataclasses
import datetime
import decimal
import enum
import importlib
import json
import logging
import sys
import threading
import types
import typing
import uuid
from functools import lru_cache
from pathlib import PurePath
from typing import Any, Iterable, Literal, Union, get_args, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from .config import Settings, default_settings
from .errors import (
    ParseError,
    ReferenceLoopError,
    SerializationError,
    StructureError,
    TypeResolutionError,
)

log = logging.getLogger(__name__)

# Returned by the encoder for a member dropped because of a reference loop.
_SKIP = object()
_MISSING = object()

_LEAF_TYPES = (
    bool,
    int,
    float,
    str,
    bytes,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    decimal.Decimal,
    PurePath,
    enum.Enum,
)

_NOT_DATA = (
    type,
    types.ModuleType,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.GeneratorType,
    types.CoroutineType,
)

_LIST_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence, collections.abc.Iterable)
_SET_ORIGINS = (set, collections.abc.Set, collections.abc.MutableSet)
_DICT_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)

class TypeRegistry:
    """Stable aliases for classes, used instead of ``module:QualName`` names."""

    def __init__(self):
        self._by_name: dict[str, type] = {}
        self._by_type: dict[type, str] = {}
        self._lock = threading.Lock()

    def add(self, cls: type, alias: str) -> None:
        with self._lock:
            existing = self._by_name.get(alias)
            if existing is not None and existing is not cls:
                raise ValueError(f"alias {alias!r} is already registered for {existing.__qualname__}")
            self._by_name[alias] = cls
            self._by_type[cls] = alias

    def alias_for(self, cls: type) -> str | None:
        return self._by_type.get(cls)

    def lookup(self, name: str) -> type | None:
        return self._by_name.get(name)

registry = TypeRegistry()

def register(alias: str):
    """Class decorator: write ``alias`` as the type discriminator of ``cls``."""
    def deco(cls):
        registry.add(cls, alias)
        return cls
    return deco

def type_name(cls: type, reg: TypeRegistry = registry) -> str:
    return reg.alias_for(cls) or f"{cls.__module__}:{cls.__qualname__}"

def resolve_type(name: str, reg: TypeRegistry = registry) -> type:
    cls = reg.lookup(name)
    if cls is not None:
        return cls
    module_name, sep, qualname = name.partition(":")
    if not sep or not module_name or not qualname:
        raise TypeResolutionError(name, "expected 'module:QualifiedName' or a registered alias")
    if module_name.startswith("."):
        raise TypeResolutionError(name, "relative module names cannot be imported")
    if "<locals>" in qualname:
        raise TypeResolutionError(name, "classes defined inside functions cannot be imported")
    module = sys.modules.get(module_name)
    if module is None:
        try:
            module = importlib.import_module(module_name)
        except (ImportError, TypeError, ValueError) as exc:
            raise TypeResolutionError(name, f"module {module_name!r} cannot be imported") from exc
    obj: Any = module
    for part in qualname.split("."):
        obj = getattr(obj, part, _MISSING)
        if obj is _MISSING:
            raise TypeResolutionError(name, f"{module_name!r} has no attribute {qualname!r}")
    if not isinstance(obj, type):
        raise TypeResolutionError(name, "not a class")
    return obj

@lru_cache(maxsize=None)
def _adapter(hint: Any) -> TypeAdapter:
    return TypeAdapter(hint)

@lru_cache(maxsize=None)
def _field_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        # Unresolvable forward references: decode those fields untyped.
        return dict(getattr(cls, "__annotations__", {}))

def _is_plain_object(value: Any) -> bool:
    return hasattr(value, "__dict__") and not isinstance(value, _NOT_DATA)

def _is_object_class(cls: type) -> bool:
    return not issubclass(cls, _LEAF_TYPES) and cls not in (list, tuple, set, frozenset, dict, type(None))

def _json_kind(data: Any) -> str:
    if data is None:
        return "null"
    if isinstance(data, bool):
        return "boolean"
    if isinstance(data, (int, float)):
        return "number"
    if isinstance(data, str):
        return "string"
    if isinstance(data, list):
        return "array"
    return "object"

def _hint_name(hint: Any) -> str:
    return getattr(hint, "__qualname__", None) or repr(hint)

class Serializer:
    """
    Converts values to JSON text and back according to ``settings``.

    Instances hold no mutable state; one is shared per process through
    ``get_serializer()``.
    """

    def __init__(self, settings: Settings | None = None, reg: TypeRegistry | None = None):
        self.settings = settings or Settings()
        self.registry = reg or registry

    # -- text -------------------------------------------------------------

    def dumps(self, value: Any) -> str:
        try:
            return json.dumps(
                self.encode(value),
                indent=self.settings.indent,
                ensure_ascii=self.settings.ensure_ascii,
                allow_nan=False,
            )
        except ValueError as exc:
            # NaN and Infinity have no JSON spelling.
            raise SerializationError(str(exc)) from exc

    def loads(self, text: str, type_: Any = Any, *, source: str | None = None) -> Any:
        # Editors on Windows often save with a byte order mark.
        text = text.removeprefix("\ufeff")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(exc.msg, source=source, line=exc.lineno, column=exc.colno) from exc
        return self.decode(data, type_)

    # -- encoding ---------------------------------------------------------

    def encode(self, value: Any) -> Any:
        """Return a tree of dicts, lists and scalars that ``json.dumps`` accepts."""
        return self._encode(value, set())

    def _encode(self, value: Any, path: set[int]) -> Any:
        if isinstance(value, enum.Enum):
            return self._encode(value.value, path)
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        key = id(value)
        if key in path:
            if self.settings.reference_loops == "error":
                raise ReferenceLoopError(value)
            return _SKIP
        path.add(key)
        try:
            return self._encode_compound(value, path)
        finally:
            path.discard(key)

    def _encode_compound(self, value: Any, path: set[int]) -> Any:
        if isinstance(value, BaseModel):
            names = type(value).model_fields
            return self._encode_object(value, ((n, getattr(value, n)) for n in names), path)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            members = ((f.name, getattr(value, f.name)) for f in dataclasses.fields(value))
            return self._encode_object(value, members, path)
        if isinstance(value, collections.abc.Mapping):
            out = {}
            for k, item in value.items():
                encoded = self._encode(item, path)
                if encoded is not _SKIP:
                    key = self._encode_key(k)
                    if key in out:
                        raise SerializationError(f"mapping keys collide on {key!r}")
                    out[key] = encoded
            return out
        if isinstance(value, (list, tuple, set, frozenset)):
            encoded_items = (self._encode(item, path) for item in value)
            return [item for item in encoded_items if item is not _SKIP]
        if _is_plain_object(value):
            return self._encode_object(value, list(vars(value).items()), path)
        try:
            return to_jsonable_python(value)
        except PydanticSerializationError as exc:
            raise SerializationError(f"cannot serialize {type(value).__qualname__} object") from exc

    def _encode_object(self, value: Any, members: Iterable[tuple[str, Any]], path: set[int]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.settings.type_names == "objects":
            out[self.settings.type_key] = type_name(type(value), self.registry)
        for name, member in members:
            encoded = self._encode(member, path)
            if encoded is not _SKIP:
                out[name] = encoded
        return out

    def _encode_key(self, key: Any) -> str:
        if isinstance(key, enum.Enum):
            key = key.value
        if isinstance(key, str):
            return key
        if key is None or isinstance(key, (bool, int, float)):
            return json.dumps(key)
        try:
            jsonable = to_jsonable_python(key)
        except PydanticSerializationError as exc:
            raise SerializationError(f"cannot use {type(key).__qualname__} as a mapping key") from exc
        if not isinstance(jsonable, str):
            raise SerializationError(f"cannot use {type(key).__qualname__} as a mapping key")
        return jsonable

    # -- decoding ---------------------------------------------------------

    def decode(self, data: Any, type_: Any = Any) -> Any:
        """Rebuild a value of ``type_`` from a parsed JSON tree."""
        return self._decode(data, type_, "$")

    def _decode(self, data: Any, hint: Any, at: str) -> Any:
        if hint is Any or hint is object or isinstance(hint, (typing.TypeVar, str, typing.ForwardRef)):
            return self._decode_untyped(data, at)
        origin = get_origin(hint)
        args = get_args(hint)
        if origin is typing.Annotated:
            return self._decode(data, args[0], at)
        if origin is Union or origin is types.UnionType:
            return self._decode_union(data, args, at)
        if origin is Literal:
            return self._validate_leaf(data, hint, at)
        if origin is None and hint in (tuple, frozenset, *_LIST_ORIGINS, *_SET_ORIGINS, *_DICT_ORIGINS):
            origin = hint
        if origin in _LIST_ORIGINS:
            items = self._expect(data, list, hint, at)
            item_hint = args[0] if args else Any
            return [self._decode(item, item_hint, f"{at}[{i}]") for i, item in enumerate(items)]
        if origin in _SET_ORIGINS or origin is frozenset:
            items = self._expect(data, list, hint, at)
            item_hint = args[0] if args else Any
            decoded = [self._decode(item, item_hint, f"{at}[{i}]") for i, item in enumerate(items)]
            try:
                return (frozenset if origin is frozenset else set)(decoded)
            except TypeError as exc:
                raise StructureError(f"unhashable set member at {at}: {exc}") from exc
        if origin is tuple:
            return self._decode_tuple(self._expect(data, list, hint, at), args, hint, at)
        if origin in _DICT_ORIGINS:
            mapping = self._expect(data, dict, hint, at)
            key_hint, value_hint = args if len(args) == 2 else (Any, Any)
            return {
                self._decode_key(k, key_hint, at): self._decode(v, value_hint, f"{at}.{k}")
                for k, v in mapping.items()
            }
        if isinstance(origin, type):
            # Parametrized user generics, e.g. Box[int].
            hint = origin
        if hint is type(None):
            if data is not None:
                raise StructureError(f"expected null at {at}, got {_json_kind(data)}")
            return None
        if isinstance(hint, type) and _is_object_class(hint):
            return self._decode_object(data, hint, at)
        return self._validate_leaf(data, hint, at)

    def _decode_untyped(self, data: Any, at: str) -> Any:
        if isinstance(data, dict):
            if self.settings.type_key in data:
                return self._decode_object(data, None, at)
            return {k: self._decode_untyped(v, f"{at}.{k}") for k, v in data.items()}
        if isinstance(data, list):
            return [self._decode_untyped(item, f"{at}[{i}]") for i, item in enumerate(data)]
        return data

    def _decode_union(self, data: Any, args: tuple, at: str) -> Any:
        if data is None and type(None) in args:
            return None
        candidates = [arg for arg in args if arg is not type(None)]
        for arg in candidates:
            if arg in (bool, int, float, str) and type(data) is arg:
                return data
        problems = []
        for arg in candidates:
            try:
                return self._decode(data, arg, at)
            except StructureError as exc:
                problems.append(str(exc))
        names = ", ".join(_hint_name(arg) for arg in args)
        raise StructureError(f"value at {at} matches none of ({names}): " + "; ".join(problems))

    def _decode_tuple(self, items: list, args: tuple, hint: Any, at: str) -> tuple:
        if not args:
            return tuple(self._decode_untyped(item, f"{at}[{i}]") for i, item in enumerate(items))
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(self._decode(item, args[0], f"{at}[{i}]") for i, item in enumerate(items))
        if len(items) != len(args):
            raise StructureError(f"expected {len(args)} items for {_hint_name(hint)} at {at}, got {len(items)}")
        return tuple(self._decode(item, arg, f"{at}[{i}]") for i, (item, arg) in enumerate(zip(items, args)))

    def _decode_key(self, key: str, hint: Any, at: str) -> Any:
        if hint is Any or hint is str:
            return key
        return self._validate_leaf(key, hint, f"{at} (key {key!r})")

    def _decode_object(self, data: Any, hint: type | None, at: str) -> Any:
        if not isinstance(data, dict):
            raise StructureError(f"expected an object for {_hint_name(hint)} at {at}, got {_json_kind(data)}")
        members = dict(data)
        cls = hint
        name = members.pop(self.settings.type_key, None)
        if name is not None:
            if not isinstance(name, str):
                raise StructureError(f"type discriminator at {at} must be a string")
            cls = resolve_type(name, self.registry)
            if hint is not None and not issubclass(cls, hint):
                raise StructureError(f"{name!r} at {at} is not a {_hint_name(hint)}")
        if cls is None:
            return {k: self._decode_untyped(v, f"{at}.{k}") for k, v in members.items()}
        if not _is_object_class(cls):
            raise StructureError(f"{_hint_name(cls)} at {at} cannot be built from an object")
        if issubclass(cls, BaseModel):
            return self._build_model(cls, members, at)
        if dataclasses.is_dataclass(cls):
            return self._build_dataclass(cls, members, at)
        return self._build_plain(cls, members, at)

    def _build_dataclass(self, cls: type, members: dict[str, Any], at: str) -> Any:
        hints = _field_hints(cls)
        fields = {f.name: f for f in dataclasses.fields(cls)}
        init_kwargs: dict[str, Any] = {}
        late: dict[str, Any] = {}
        for name, raw in members.items():
            field = fields.get(name)
            if field is None:
                continue
            value = self._decode(raw, hints.get(name, Any), f"{at}.{name}")
            (init_kwargs if field.init else late)[name] = value
        try:
            obj = cls(**init_kwargs)
        except TypeError as exc:
            raise StructureError(f"cannot build {cls.__qualname__} at {at}: {exc}") from exc
        for name, value in late.items():
            object.__setattr__(obj, name, value)
        return obj

    def _build_model(self, cls: type[BaseModel], members: dict[str, Any], at: str) -> BaseModel:
        fields = cls.model_fields
        missing = [name for name, field in fields.items() if field.is_required() and name not in members]
        if missing:
            raise StructureError(f"cannot build {cls.__qualname__} at {at}: missing {', '.join(missing)}")
        values = {
            name: self._decode(raw, fields[name].annotation, f"{at}.{name}")
            for name, raw in members.items()
            if name in fields
        }
        return cls.model_construct(**values)

    def _build_plain(self, cls: type, members: dict[str, Any], at: str) -> Any:
        hints = _field_hints(cls)
        try:
            obj = cls.__new__(cls)
            state = vars(obj)
        except TypeError as exc:
            raise StructureError(f"cannot build {cls.__qualname__} at {at}: {exc}") from exc
        for name, raw in members.items():
            state[name] = self._decode(raw, hints.get(name, Any), f"{at}.{name}")
        return obj

    def _validate_leaf(self, data: Any, hint: Any, at: str) -> Any:
        try:
            return _adapter(hint).validate_python(data)
        except ValidationError as exc:
            raise StructureError(f"invalid {_hint_name(hint)} at {at}: {exc.errors()[0]['msg']}") from exc

    @staticmethod
    def _expect(data: Any, kind: type, hint: Any, at: str) -> Any:
        if not isinstance(data, kind):
            expected = "array" if kind is list else "object"
            raise StructureError(f"expected an {expected} for {_hint_name(hint)} at {at}, got {_json_kind(data)}")
        return data

# Keep a single serializer per-process so every call sees the same settings.
_serializer: Serializer | None = None
_serializer_lock = threading.Lock()

def get_serializer() -> Serializer:
    global _serializer
    if _serializer is None:
        with _serializer_lock:
            if _serializer is None:
                _serializer = Serializer(default_settings())
                log.debug("built shared serializer: %s", _serializer.settings)
    return _serializer
