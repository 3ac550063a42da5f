import os
from typing import Literal

from pydantic import BaseModel, ConfigDict

class Settings(BaseModel):
    """
    Serializer settings shared by every persistence call.
    """
    model_config = ConfigDict(frozen=True)

    reference_loops: Literal["ignore", "error"] = "ignore"
    type_names: Literal["objects", "none"] = "objects"
    type_key: str = "$type"
    indent: int | None = 2
    encoding: str = "utf-8"
    ensure_ascii: bool = False
    resource_package: str = "jsonwrap.bundled"
    resource_suffixes: tuple[str, ...] = (".json", ".txt")

def _env_indent(raw: str) -> int | None:
    if raw.strip().lower() in {"", "none", "compact"}:
        return None
    return int(raw)

def default_settings() -> "Settings":
    overrides: dict[str, object] = {}
    if "JSONWRAP_INDENT" in os.environ:
        overrides["indent"] = _env_indent(os.environ["JSONWRAP_INDENT"])
    if "JSONWRAP_REFERENCE_LOOPS" in os.environ:
        overrides["reference_loops"] = os.environ["JSONWRAP_REFERENCE_LOOPS"].lower()
    if "JSONWRAP_TYPE_NAMES" in os.environ:
        overrides["type_names"] = os.environ["JSONWRAP_TYPE_NAMES"].lower()
    if "JSONWRAP_RESOURCE_PACKAGE" in os.environ:
        overrides["resource_package"] = os.environ["JSONWRAP_RESOURCE_PACKAGE"]
    return Settings(**overrides)
