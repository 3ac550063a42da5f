import logging
from importlib import resources as importlib_resources
from pathlib import Path
from typing import Protocol, Sequence

from .errors import ResourceNotFoundError

log = logging.getLogger(__name__)

class ResourceStore(Protocol):
    def load(self, name: str) -> str: ...

def _segments(name: str) -> list[str] | None:
    # Logical names are relative and slash-separated; anything else is a miss.
    if not name or name.startswith(("/", "\\")):
        return None
    parts = name.replace("\\", "/").split("/")
    if any(p in ("", ".", "..") for p in parts):
        return None
    return parts

def _candidates(parts: list[str], suffixes: Sequence[str]) -> list[list[str]]:
    head, leaf = parts[:-1], parts[-1]
    return [head + [leaf + suffix] for suffix in suffixes] + [parts]

class PackageResources:
    """
    Text assets shipped inside an importable package. ``load("defaults/hero")``
    finds ``defaults/hero.json`` (or ``.txt``) next to the package's modules.
    """

    def __init__(self, package: str, suffixes: Sequence[str] = (".json", ".txt"), encoding: str = "utf-8"):
        self.package = package
        self.suffixes = tuple(suffixes)
        self.encoding = encoding

    def load(self, name: str) -> str:
        parts = _segments(name)
        if parts is None:
            raise ResourceNotFoundError(name, self.package)
        try:
            root = importlib_resources.files(self.package)
        except ModuleNotFoundError as exc:
            raise ResourceNotFoundError(name, self.package) from exc
        for candidate in _candidates(parts, self.suffixes):
            entry = root
            for part in candidate:
                entry = entry.joinpath(part)
            if entry.is_file():
                log.debug("loading resource %s from %s", name, self.package)
                return entry.read_text(encoding=self.encoding)
        raise ResourceNotFoundError(name, self.package)

class DirectoryResources:
    """Same lookup as PackageResources over a plain directory."""

    def __init__(self, root: str | Path, suffixes: Sequence[str] = (".json", ".txt"), encoding: str = "utf-8"):
        self.root = Path(root)
        self.suffixes = tuple(suffixes)
        self.encoding = encoding

    def load(self, name: str) -> str:
        parts = _segments(name)
        if parts is not None:
            for candidate in _candidates(parts, self.suffixes):
                p = self.root.joinpath(*candidate)
                if p.is_file():
                    log.debug("loading resource %s from %s", name, self.root)
                    return p.read_text(encoding=self.encoding)
        raise ResourceNotFoundError(name, str(self.root))
