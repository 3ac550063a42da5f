import logging
from pathlib import Path
from typing import Any, TypeVar

from .resources import PackageResources, ResourceStore
from .serializer import Serializer, get_serializer

T = TypeVar("T")

log = logging.getLogger(__name__)

def _resolve(serializer: Serializer | None) -> Serializer:
    return serializer or get_serializer()

def serialize_to_string(obj: Any, *, serializer: Serializer | None = None) -> str:
    return _resolve(serializer).dumps(obj)

def serialize(obj: Any, path: str | Path, *, serializer: Serializer | None = None) -> None:
    """
    Write ``obj`` to ``path`` as an indented, type-annotated document,
    replacing whatever the file held. Missing parent directories are created.
    """
    s = _resolve(serializer)
    # Encode before touching the file so a bad value leaves no partial document.
    text = s.dumps(obj)
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding=s.settings.encoding) as f:
        f.write(text)
    log.debug("wrote %s (%d chars)", p, len(text))

def deserialize(text: str, type_: type[T] | Any = Any, *, serializer: Serializer | None = None, source: str | None = None) -> T:
    return _resolve(serializer).loads(text, type_, source=source)

def deserialize_from_path(path: str | Path, type_: type[T] | Any = Any, *, serializer: Serializer | None = None) -> T:
    s = _resolve(serializer)
    p = Path(path)
    text = p.read_text(encoding=s.settings.encoding)
    log.debug("read %s", p)
    return s.loads(text, type_, source=str(p))

def default_store(serializer: Serializer | None = None) -> ResourceStore:
    settings = _resolve(serializer).settings
    return PackageResources(settings.resource_package, settings.resource_suffixes, settings.encoding)

def deserialize_from_resource(
    name: str,
    type_: type[T] | Any = Any,
    *,
    store: ResourceStore | None = None,
    serializer: Serializer | None = None,
) -> T:
    """
    Restore a value from a bundled read-only document. ``name`` is a logical
    name without extension, e.g. ``"defaults/hero"``.
    """
    text = (store or default_store(serializer)).load(name)
    return _resolve(serializer).loads(text, type_, source=f"resource {name!r}")
