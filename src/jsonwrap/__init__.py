"""
jsonwrap: save and load Python objects as readable JSON documents.

Usage:

    from jsonwrap import serialize, deserialize_from_path

    serialize(hero, "/tmp/saves/hero.json")
    hero = deserialize_from_path("/tmp/saves/hero.json", Hero)

Every object is written with a ``$type`` entry naming its class, so fields
declared as a base class come back as the subclass that was saved. Reference
loops are dropped instead of failing. Settings are shared process-wide; see
``jsonwrap.config`` for the environment overrides.
"""

from .config import Settings, default_settings
from .errors import (
    JsonWrapError,
    ParseError,
    ReferenceLoopError,
    ResourceNotFoundError,
    SerializationError,
    StructureError,
    TypeResolutionError,
)
from .io import (
    deserialize,
    deserialize_from_path,
    deserialize_from_resource,
    serialize,
    serialize_to_string,
)
from .resources import DirectoryResources, PackageResources, ResourceStore
from .serializer import Serializer, get_serializer, register

__all__ = [
    "DirectoryResources",
    "JsonWrapError",
    "PackageResources",
    "ParseError",
    "ReferenceLoopError",
    "ResourceNotFoundError",
    "ResourceStore",
    "SerializationError",
    "Serializer",
    "Settings",
    "StructureError",
    "TypeResolutionError",
    "default_settings",
    "deserialize",
    "deserialize_from_path",
    "deserialize_from_resource",
    "get_serializer",
    "register",
    "serialize",
    "serialize_to_string",
]
